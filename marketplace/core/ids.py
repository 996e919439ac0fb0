import re
import uuid

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def slugify(text: str, *, max_length: int = 80) -> str:
    slug = _SLUG_STRIP.sub("-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "item"
