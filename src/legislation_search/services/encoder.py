"""Text encoder backed by a Hugging Face transformer model."""

from __future__ import annotations

import os
from typing import List, Optional, Tuple

import torch
from huggingface_hub import hf_hub_download
from huggingface_hub.utils import EntryNotFoundError, RepositoryNotFoundError, RevisionNotFoundError
from tenacity import Retrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from legislation_search.utils.logging import get_logger

logger = get_logger("encoder")

# Artifacts fetched from the model hub: hyperparameters, tokenizer, weights
CONFIG_FILE = "config.json"
TOKENIZER_FILE = "tokenizer.json"
WEIGHTS_FILE = "model.safetensors"


class Encoder:
    """
    Interface the batch encoder relies on.

    ``tokenize`` returns unpadded token ids and attention mask for one text;
    ``forward`` maps padded ``(batch, seq)`` id and mask tensors to hidden
    states of shape ``(batch, seq, dimension)``.
    """

    model_name: str = ""
    dimension: int = 0
    pad_token_id: int = 0

    def tokenize(self, text: str) -> Tuple[List[int], List[int]]:
        raise NotImplementedError

    def forward(self, input_ids: torch.Tensor, attention_mask: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError


class TransformerEncoder(Encoder):
    """Sentence encoder built from a BERT-style model (e.g. all-MiniLM-L6-v2)."""

    def __init__(self, model, tokenizer, model_name: str, device: str = "cpu", max_length: int = 256):
        self.model = model
        self.tokenizer = tokenizer
        self.model_name = model_name
        self.device = torch.device(device)
        self.max_length = max_length
        self.dimension = int(model.config.hidden_size)
        pad_token_id = tokenizer.pad_token_id
        if pad_token_id is None:
            pad_token_id = getattr(model.config, "pad_token_id", None)
        self.pad_token_id = int(pad_token_id or 0)

    @classmethod
    def load(
        cls,
        model_id: str,
        revision: str = "main",
        cache_dir: Optional[str] = None,
        device: str = "cpu",
        max_length: int = 256,
        max_attempts: int = 3,
        timeout: float = 60.0,
    ) -> "TransformerEncoder":
        """
        Download (or reuse cached) artifacts and build the runtime model.

        Transient download failures are retried; a missing repository,
        revision or file is not.
        """
        from transformers import AutoModel, PreTrainedTokenizerFast

        def _fetch(filename: str) -> str:
            for attempt in Retrying(
                reraise=True,
                stop=stop_after_attempt(max(1, max_attempts)),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_not_exception_type(
                    (RepositoryNotFoundError, RevisionNotFoundError, EntryNotFoundError)
                ),
            ):
                with attempt:
                    return hf_hub_download(
                        repo_id=model_id,
                        filename=filename,
                        revision=revision,
                        cache_dir=cache_dir,
                        etag_timeout=timeout,
                    )
            raise RuntimeError(f"Download retries exhausted for {filename}")

        logger.info(f"Fetching encoder artifacts: model={model_id}, revision={revision}")
        config_path = _fetch(CONFIG_FILE)
        tokenizer_path = _fetch(TOKENIZER_FILE)
        _fetch(WEIGHTS_FILE)

        logger.info("Loading tokenizer and model weights")
        tokenizer = PreTrainedTokenizerFast(tokenizer_file=tokenizer_path)
        # config.json and model.safetensors share one snapshot directory
        model = AutoModel.from_pretrained(os.path.dirname(config_path), use_safetensors=True)
        model.to(device)
        model.eval()

        encoder = cls(model, tokenizer, model_name=model_id, device=device, max_length=max_length)
        logger.info(f"Encoder ready: model={model_id}, dimension={encoder.dimension}, device={device}")
        return encoder

    def tokenize(self, text: str) -> Tuple[List[int], List[int]]:
        encoded = self.tokenizer(text, truncation=True, max_length=self.max_length)
        input_ids = list(encoded["input_ids"])
        attention_mask = list(encoded.get("attention_mask") or [1] * len(input_ids))
        return input_ids, attention_mask

    def forward(self, input_ids: torch.Tensor, attention_mask: torch.Tensor) -> torch.Tensor:
        with torch.inference_mode():
            output = self.model(
                input_ids=input_ids.to(self.device),
                attention_mask=attention_mask.to(self.device),
            )
        return output.last_hidden_state.to("cpu", dtype=torch.float32)
