# src/userstamps/utils/inflection.py

import re

_IRREGULAR = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "mouse": "mice",
}
_UNCOUNTABLE = {"equipment", "information", "series", "species", "news", "data", "metadata"}


def underscore(name: str) -> str:
    """
    Convert a CamelCase class name into snake_case ("BlogPost" -> "blog_post").
    """
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


def pluralize(word: str) -> str:
    """
    Pluralize the last segment of a snake_case word ("blog_post" -> "blog_posts").
    """
    if not word:
        return word

    head, _, last = word.rpartition("_")
    prefix = f"{head}_" if head else ""

    if last in _UNCOUNTABLE:
        return word
    if last in _IRREGULAR:
        return prefix + _IRREGULAR[last]
    if re.search(r"(ss|us|x|z|ch|sh)$", last):
        return f"{prefix}{last}es"
    if last.endswith("s"):
        # already plural
        return word
    if re.search(r"[^aeiou]y$", last):
        return f"{prefix}{last[:-1]}ies"
    return f"{prefix}{last}s"
