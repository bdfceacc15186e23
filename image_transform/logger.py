import logging
import os
import sys


def setup_logger(level: int = logging.INFO, name: str = "image_transform") -> logging.Logger:
    """Create or update the project logger.

    - Respects env overrides IMAGE_TRANSFORM_LOG_LEVEL/IMAGE_TRANSFORM_LOG_CATS on
      every call so an embedding application can change them late.
    - Ensures there is exactly one StreamHandler of ours on the base logger and
      updates its formatter/filters instead of bailing out early.
    """
    logger = logging.getLogger(name)

    env_level = (os.getenv("IMAGE_TRANSFORM_LOG_LEVEL") or "").strip().lower()
    if env_level:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(env_level, level)
    logger.setLevel(level)

    # Reuse our handler even if sys.stderr has been swapped since (test capture, embedding apps).
    stream_handler: logging.StreamHandler | None = None
    for h in list(logger.handlers):
        if getattr(h, "_image_transform_handler", False):
            stream_handler = h

    if stream_handler is None:
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        stream_handler._image_transform_handler = True  # type: ignore[attr-defined]
        logger.addHandler(stream_handler)

    fmt = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    stream_handler.setFormatter(fmt)

    # Category filter, e.g. IMAGE_TRANSFORM_LOG_CATS=quality,session
    stream_handler.filters.clear()
    cats = (os.getenv("IMAGE_TRANSFORM_LOG_CATS") or "").strip()
    if cats:
        allowed = {c.strip() for c in cats.split(",") if c.strip()}

        class _CategoryFilter(logging.Filter):
            def filter(self, record: logging.LogRecord) -> bool:
                # record.name like: image_transform.session, image_transform.quality
                parts = (record.name or "").split(".")
                suffix = parts[-1] if parts else record.name
                return suffix in allowed

        stream_handler.addFilter(_CategoryFilter())

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
