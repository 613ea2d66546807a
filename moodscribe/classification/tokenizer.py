"""Text-to-tensor tokenization for the emotion model."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np

from ..models.emotion import TokenEncoding

logger = logging.getLogger(__name__)

PAD_TOKEN = "[PAD]"
UNK_TOKEN = "[UNK]"
PAD_ID = 0
UNK_ID = 1

_WORD_BOUNDARY = re.compile(r"[\W_]+")


class AbstractTokenizer(ABC):
    """Maps raw text to a fixed-length id sequence and attention mask."""

    def __init__(self, max_length: int = 128):
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.max_length = max_length

    @abstractmethod
    def encode(self, text: str) -> TokenEncoding:
        """Encode text into exactly ``max_length`` ids plus mask."""
        pass

    def _pad(self, ids: List[int]) -> TokenEncoding:
        """Right-pad ids to ``max_length`` and derive the attention mask."""
        input_ids = np.full(self.max_length, PAD_ID, dtype=np.int32)
        ids = ids[:self.max_length]
        input_ids[:len(ids)] = ids
        attention_mask = (input_ids != PAD_ID).astype(np.int32)
        return TokenEncoding(input_ids=input_ids, attention_mask=attention_mask, pad_id=PAD_ID)


class PlaceholderTokenizer(AbstractTokenizer):
    """Word-level tokenizer that grows its vocabulary on the fly.

    This is a stand-in for a real subword tokenizer. Unseen words get the next
    free id in encounter order, starting at 2; 0 and 1 are reserved for
    ``[PAD]`` and ``[UNK]``. The vocabulary persists across ``encode`` calls
    until ``reset`` is called, so ids are only meaningful within one
    classification session.
    """

    def __init__(self, max_length: int = 128, vocab_size: Optional[int] = 30522):
        super().__init__(max_length)
        if vocab_size is not None and vocab_size <= UNK_ID + 1:
            raise ValueError(f"vocab_size must be greater than {UNK_ID + 1}, got {vocab_size}")
        self.vocab_size = vocab_size
        self.vocab: Dict[str, int] = {}
        self.reset()

    def reset(self) -> None:
        """Start a fresh vocabulary."""
        self.vocab = {PAD_TOKEN: PAD_ID, UNK_TOKEN: UNK_ID}
        self._next_id = UNK_ID + 1

    @staticmethod
    def split_words(text: str) -> List[str]:
        """Lowercase and split on every non-alphanumeric boundary."""
        return [word for word in _WORD_BOUNDARY.split(text.lower()) if word]

    def encode(self, text: str) -> TokenEncoding:
        words = self.split_words(text)[:self.max_length]
        ids = [self._token_id(word) for word in words]
        encoding = self._pad(ids)
        logger.debug(f"Encoded {len(words)} tokens (vocab size now {len(self.vocab)})")
        return encoding

    def _token_id(self, word: str) -> int:
        token_id = self.vocab.get(word)
        if token_id is not None:
            return token_id
        if self.vocab_size is not None and self._next_id >= self.vocab_size:
            return UNK_ID
        token_id = self._next_id
        self.vocab[word] = token_id
        self._next_id += 1
        return token_id
