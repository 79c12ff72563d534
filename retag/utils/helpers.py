import importlib
import os


def env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if not value:
        return default
    return value not in ("0", "false", "no", "off")


def env_choice(name: str, default: str) -> str:
    return os.environ.get(name, "").strip().lower() or default


def load_object(spec: str):
    """
    Resolve "package.module:Attr.Nested" to the object it names.
    """
    module_name, sep, attr_path = spec.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Expected 'module:attribute', got '{spec}'.")
    obj = importlib.import_module(module_name)
    for part in attr_path.split("."):
        obj = getattr(obj, part)
    return obj
