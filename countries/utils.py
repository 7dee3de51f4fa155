import logging
import os
import random
import threading
from datetime import datetime, timezone

from django.conf import settings
from PIL import Image, ImageDraw, ImageFont

from .exceptions import ArtifactGenerationFailed

logger = logging.getLogger(__name__)

GDP_MULTIPLIER_MIN = 1000
GDP_MULTIPLIER_MAX = 2000


class Config:

    @property
    def cache_path(self) -> str:
        """Return absolute cache directory path (writable)."""
        if settings.ENVIRONMENT == "production":
            path = "/tmp/cache"
        else:
            path = os.path.abspath(settings.CACHE_DIR)
        os.makedirs(path, exist_ok=True)
        return path


config = Config()


def make_multiplier(rng=random):
    """Uniform draw from [GDP_MULTIPLIER_MIN, GDP_MULTIPLIER_MAX)."""
    return GDP_MULTIPLIER_MIN + rng.random() * (GDP_MULTIPLIER_MAX - GDP_MULTIPLIER_MIN)


def get_summary_image_path():
    """Return full path to the summary image in the writable cache."""
    return os.path.join(config.cache_path, "summary.png")


def _load_fonts():
    try:
        return ImageFont.truetype("arial.ttf", 28), ImageFont.truetype("arial.ttf", 20)
    except OSError:
        return ImageFont.load_default(), ImageFont.load_default()


def generate_summary_image(total_countries, top5, timestamp, path=None):
    """
    Generate a summary PNG showing total countries, top 5 GDP countries,
    and last refresh timestamp. ``top5`` holds ``(name, estimated_gdp)`` pairs.
    """
    path = path or get_summary_image_path()

    img = Image.new("RGB", (800, 500), color="white")
    draw = ImageDraw.Draw(img)
    font_title, font_body = _load_fonts()

    draw.text((20, 20), "Country Summary Report", fill="black", font=font_title)
    draw.text((20, 70), f"Total Countries: {total_countries}", fill="black", font=font_body)
    draw.text((20, 120), "Top 5 Countries by Estimated GDP:", fill="black", font=font_body)

    y = 160
    if not top5:
        draw.text((40, y), "No GDP data available.", fill="gray", font=font_body)
    else:
        for rank, (name, gdp) in enumerate(top5, start=1):
            draw.text((40, y), f"{rank}. {name}: {round(gdp or 0, 2):,}", fill="blue", font=font_body)
            y += 30

    draw.text((20, 400), f"Last Refresh: {timestamp}", fill="black", font=font_body)

    img.save(path, "PNG")
    logger.info("Summary image saved to %s", path)
    return path


def run_detached(func, timeout, name="detached-task"):
    """
    Run ``func`` on a daemon thread without blocking the caller.

    Errors and runs longer than ``timeout`` seconds are logged as
    ArtifactGenerationFailed. Returns the supervising thread.
    """

    def guarded():
        try:
            func()
        except Exception as exc:
            logger.exception("%s failed: %r", name, ArtifactGenerationFailed(str(exc)))

    def supervise():
        worker = threading.Thread(target=guarded, name=f"{name}-worker", daemon=True)
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            logger.error("%s failed: %r", name, ArtifactGenerationFailed(f"still running after {timeout}s"))

    supervisor = threading.Thread(target=supervise, name=name, daemon=True)
    supervisor.start()
    return supervisor


def get_now():
    """Return current UTC datetime (aware)."""
    return datetime.now(timezone.utc)
