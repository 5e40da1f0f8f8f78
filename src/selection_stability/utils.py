# src/selection_stability/utils.py
# General small functions

import os


def ensure_parent_dir(path: str):
    """ensure the directory holding `path` exists"""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def parse_int_list(text: str) -> list:
    """'1, 2,3' -> [1, 2, 3]"""
    return [int(s) for s in (p.strip() for p in text.split(",")) if s]


def parse_str_list(text: str) -> list:
    return [s for s in (p.strip() for p in text.split(",")) if s]


def pretty_dict(d: dict) -> str:
    return "\n".join(f"{k:>18}: {v}" for k, v in d.items())
