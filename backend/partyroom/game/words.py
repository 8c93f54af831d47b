from __future__ import annotations

import random


DEFAULT_WORDS = [
    "apple", "banana", "bicycle", "bridge", "butterfly", "cactus", "camera",
    "candle", "castle", "cat", "cloud", "coffee", "compass", "crown",
    "dinosaur", "dog", "dolphin", "dragon", "drum", "elephant", "feather",
    "fireworks", "fish", "flower", "giraffe", "guitar", "hamburger", "hat",
    "helicopter", "house", "ice cream", "island", "kite", "ladder", "lamp",
    "lighthouse", "lion", "moon", "mountain", "mushroom", "octopus", "owl",
    "penguin", "piano", "pizza", "rainbow", "robot", "rocket", "sailboat",
    "snowman", "spider", "star", "sun", "sunflower", "telescope", "tent",
    "train", "tree", "turtle", "umbrella", "volcano", "whale", "windmill",
]

DEFAULT_WHEEL_OPTIONS = [
    "Movie night pick",
    "Coffee date challenge",
    "Sing one chorus",
    "Tell a fun memory",
]


def pick_word(words: list[str] | None = None) -> str:
    return random.choice(words or DEFAULT_WORDS)
