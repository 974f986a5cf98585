"""Quadtree distribution of keypoints so that the retained features cover the image evenly."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

import numpy as np

from orbfeatures.keypoint import KeyPoint

Corner = tuple[int, int]


@dataclass(eq=False)
class ExtractorNode:
    """A rectangular cell of the quadtree and the keypoints that fall inside it.

    Corners are ``(x, y)`` integer pairs: upper-left, upper-right, bottom-left and
    bottom-right. ``no_more`` marks a node that holds a single keypoint and is not split again.
    """

    ul: Corner
    ur: Corner
    bl: Corner
    br: Corner
    keys: list[KeyPoint] = field(default_factory=list)
    no_more: bool = False

    def divide(self) -> tuple[ExtractorNode, ExtractorNode, ExtractorNode, ExtractorNode]:
        """Split into four children (upper-left, upper-right, lower-left, lower-right) and share out the keys."""
        half_x = math.ceil((self.ur[0] - self.ul[0]) / 2)
        half_y = math.ceil((self.br[1] - self.ul[1]) / 2)
        ul_x, ul_y = self.ul

        n1 = ExtractorNode(
            ul=self.ul,
            ur=(ul_x + half_x, ul_y),
            bl=(ul_x, ul_y + half_y),
            br=(ul_x + half_x, ul_y + half_y),
        )
        n2 = ExtractorNode(ul=n1.ur, ur=self.ur, bl=n1.br, br=(self.ur[0], ul_y + half_y))
        n3 = ExtractorNode(ul=n1.bl, ur=n1.br, bl=self.bl, br=(n1.br[0], self.bl[1]))
        n4 = ExtractorNode(ul=n3.ur, ur=n2.br, bl=n3.br, br=self.br)

        split_x, split_y = n1.ur[0], n1.br[1]
        for kp in self.keys:
            if kp.x < split_x:
                (n1 if kp.y < split_y else n3).keys.append(kp)
            elif kp.y < split_y:
                n2.keys.append(kp)
            else:
                n4.keys.append(kp)

        children = (n1, n2, n3, n4)
        for child in children:
            child.no_more = len(child.keys) == 1
        return children


def _initial_nodes(keys: list[KeyPoint], width: int, height: int) -> list[ExtractorNode]:
    n_ini = math.floor(float(np.float32(width) / np.float32(height)) + 0.5)
    if n_ini < 1:
        raise ValueError("region is too narrow for its height to be distributed")
    h_x = np.float32(width) / np.float32(n_ini)

    nodes = []
    for i in range(n_ini):
        left = int(h_x * np.float32(i))
        right = int(h_x * np.float32(i + 1))
        nodes.append(ExtractorNode(ul=(left, 0), ur=(right, 0), bl=(left, height), br=(right, height)))

    for kp in keys:
        if kp.x < 0 or kp.y < 0 or kp.x > width or kp.y > height:
            raise ValueError(f"keypoint ({kp.x}, {kp.y}) lies outside the region")
        index = min(int(np.float32(kp.x) / h_x), n_ini - 1)
        nodes[index].keys.append(kp)

    populated = [node for node in nodes if node.keys]
    for node in populated:
        node.no_more = len(node.keys) == 1
    return populated


def _expand_largest(
    nodes: list[ExtractorNode], expandable: list[ExtractorNode], n: int
) -> list[ExtractorNode]:
    """Split the most populated nodes first until ``n`` nodes exist or nothing changes."""
    while True:
        prev_size = len(nodes)
        previous = sorted(expandable, key=lambda node: len(node.keys))
        expandable = []
        for parent in reversed(previous):
            children = [child for child in parent.divide() if child.keys]
            nodes = children[::-1] + [node for node in nodes if node is not parent]
            expandable.extend(child for child in children if len(child.keys) > 1)
            if len(nodes) >= n:
                break
        if len(nodes) >= n or len(nodes) == prev_size:
            return nodes


def distribute_oct_tree(
    keypoints: Iterable[KeyPoint], min_x: int, max_x: int, min_y: int, max_y: int, n: int
) -> list[KeyPoint]:
    """Spread keypoints over the region with a quadtree and keep the strongest one per leaf.

    Keypoint coordinates are relative to ``(min_x, min_y)``. Nodes are split until there
    are at least ``n`` of them or no node can be split further, so the result may hold
    somewhat more than ``n`` keypoints.
    """
    keys = list(keypoints)
    width = max_x - min_x
    height = max_y - min_y
    if width <= 0 or height <= 0:
        raise ValueError("region must have a positive width and height")

    nodes = _initial_nodes(keys, width, height)

    while True:
        prev_size = len(nodes)
        front: list[ExtractorNode] = []
        kept: list[ExtractorNode] = []
        expandable: list[ExtractorNode] = []
        for node in nodes:
            if node.no_more:
                kept.append(node)
                continue
            for child in node.divide():
                if child.keys:
                    front.append(child)
                    if len(child.keys) > 1:
                        expandable.append(child)
        nodes = front[::-1] + kept

        if len(nodes) >= n or len(nodes) == prev_size:
            break
        if len(nodes) + 3 * len(expandable) > n:
            nodes = _expand_largest(nodes, expandable, n)
            break

    return [max(node.keys, key=lambda kp: kp.response) for node in nodes]