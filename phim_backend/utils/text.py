from __future__ import annotations

import hashlib
import re
import unicodedata

_NON_WORD_RE = re.compile(r"[\W_]+", re.UNICODE)

# Letters that NFKD does not decompose.
_EXTRA_FOLDS = str.maketrans({"đ": "d", "Đ": "D", "ø": "o", "Ø": "O", "ł": "l", "Ł": "L"})


def fold_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value.translate(_EXTRA_FOLDS))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(value: str) -> str:
    """
    URL-safe slug: lower-cased, diacritics folded, runs of non-alphanumerics collapsed to `-`.
    """
    folded = fold_diacritics(str(value or "").casefold())
    return _NON_WORD_RE.sub("-", folded).strip("-")


def normalize_title(value: str) -> str:
    """
    Comparison key for titles and names: case, diacritics and punctuation insensitive.

    "Spider-Man: No Way Home" and "spider man no way home" map to the same key.
    """
    folded = fold_diacritics(str(value or "").casefold())
    return _NON_WORD_RE.sub("", folded)


def sha256(value: str) -> str:
    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()
