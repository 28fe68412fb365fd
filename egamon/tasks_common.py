import logging
from typing import Any


LOGGER = logging.getLogger("egamon.tasks")


class MissingInputError(RuntimeError):
    """A required input object (tree, histogram, raw stream, macro) is unavailable."""


def get_object(root_dir: Any, name: str, class_name: str | None = None) -> Any | None:
    """Fetch ``name`` from a ROOT directory, warning and returning None when unusable."""
    if not root_dir:
        LOGGER.warning("get_object: no directory passed")
        return None
    obj = root_dir.Get(name)
    if not obj:
        LOGGER.warning("get_object: object %s not found in %s", name, root_dir.GetPath())
        return None
    if class_name is None:
        return obj
    if not obj.InheritsFrom(class_name):
        LOGGER.warning(
            "get_object: object %s in %s is not a %s, but a %s",
            name,
            root_dir.GetPath(),
            class_name,
            obj.ClassName(),
        )
        return None
    return obj


def get_hist(root_dir: Any, name: str) -> Any | None:
    return get_object(root_dir, name, "TH1")
