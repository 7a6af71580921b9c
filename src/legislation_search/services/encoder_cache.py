"""Construct-once cache for the text encoder."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from legislation_search.config import get_settings
from legislation_search.services.encoder import Encoder, TransformerEncoder
from legislation_search.utils.errors import EncoderLoadError
from legislation_search.utils.logging import get_logger

logger = get_logger("encoder_cache")
settings = get_settings()

EncoderFactory = Callable[[], Encoder]


def default_encoder_factory() -> Encoder:
    """Build the configured transformer encoder (blocking)."""
    return TransformerEncoder.load(
        model_id=settings.encoder.model_id,
        revision=settings.encoder.revision,
        cache_dir=settings.encoder.cache_dir,
        device=settings.encoder.device,
        max_length=settings.encoder.max_length,
        max_attempts=settings.encoder.load_max_retries,
        timeout=settings.encoder.download_timeout,
    )


class EncoderCache:
    """
    Own a lazily constructed encoder shared by all callers.

    The first ``acquire_encoder`` call starts construction on a worker thread.
    Callers arriving while it runs await the same attempt and get the same
    instance (or the same ``EncoderLoadError``). A failed attempt is
    forgotten, so the next call starts a fresh one; an encoder is only
    published once its factory has returned.
    """

    def __init__(self, factory: Optional[EncoderFactory] = None, model_name: Optional[str] = None) -> None:
        self._factory = factory or default_encoder_factory
        self._model_name = model_name or settings.encoder.model_id
        self._encoder: Optional[Encoder] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def is_loaded(self) -> bool:
        """Whether an encoder is cached."""
        return self._encoder is not None

    async def acquire_encoder(self) -> Encoder:
        """Return the shared encoder, constructing it on first use."""
        if self._encoder is not None:
            return self._encoder

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._construct())

        # shield: one cancelled waiter must not abort construction for the others
        return await asyncio.shield(self._pending)

    async def _construct(self) -> Encoder:
        attempt = asyncio.current_task()
        logger.info(f"Initializing encoder (first use): model={self._model_name}")
        try:
            encoder = await asyncio.to_thread(self._factory)
        except EncoderLoadError:
            self._forget(attempt)
            logger.error(f"Encoder initialization failed: model={self._model_name}", exc_info=True)
            raise
        except Exception as e:
            self._forget(attempt)
            logger.error(f"Encoder initialization failed: model={self._model_name} - {e}", exc_info=True)
            raise EncoderLoadError(
                f"Failed to initialize encoder: {e}",
                model=self._model_name,
                details={"error_type": type(e).__name__},
            ) from e

        if self._pending is not attempt:
            # reset() ran while loading; hand the encoder to current waiters only
            logger.info(f"Encoder initialized after reset, not cached: model={self._model_name}")
            return encoder

        self._encoder = encoder
        self._pending = None
        logger.info(f"Encoder initialized: model={self._model_name}, dimension={encoder.dimension}")
        return encoder

    def _forget(self, attempt: Optional[asyncio.Task]) -> None:
        if self._pending is attempt:
            self._pending = None

    def reset(self) -> None:
        """Drop the cached encoder; the next call constructs a new one.

        A construction already running still answers its waiters but is not cached.
        """
        self._encoder = None
        self._pending = None
