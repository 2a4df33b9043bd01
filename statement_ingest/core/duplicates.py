"""
Duplicate transaction detection, within one import and against existing records.
"""
import re
from typing import Iterable, List, Sequence, Tuple
import logging

from rapidfuzz import fuzz

from ..models.schema import CanonicalTransaction

logger = logging.getLogger(__name__)

MERCHANT_SIMILARITY_THRESHOLD = 80


def _merchant_key(tx: CanonicalTransaction) -> str:
    return re.sub(r'\s+', '', (tx.merchant or tx.memo or '').lower())


def dedupe_key(tx: CanonicalTransaction, strict: bool = False) -> str:
    """
    Identity key of a transaction within one file.

    Strict mode ignores the merchant and keys on date and amount only.
    """
    if strict:
        return f"{tx.date}|{tx.amount}"
    return f"{tx.date}|{_merchant_key(tx)}|{tx.amount}"


def remove_duplicate_transactions(
    transactions: Iterable[CanonicalTransaction], strict: bool = False
) -> Tuple[List[CanonicalTransaction], int]:
    """
    Drop repeated transactions, keeping the first occurrence of each.

    Args:
        transactions: Transactions in file order
        strict: Key on date and amount only

    Returns:
        Tuple of (unique transactions in original order, number removed)
    """
    seen = set()
    unique = []
    removed = 0

    for tx in transactions:
        key = dedupe_key(tx, strict)
        if key in seen:
            removed += 1
            logger.debug(f"Duplicate transaction: {key}")
            continue
        seen.add(key)
        unique.append(tx)

    if removed:
        logger.info(f"Removed {removed} duplicate transaction(s)")
    return unique, removed


def merchant_similarity(a: CanonicalTransaction, b: CanonicalTransaction) -> float:
    """Merchant similarity 0-100; 100 when either side has no merchant text."""
    key_a, key_b = _merchant_key(a), _merchant_key(b)
    if not key_a or not key_b:
        return 100.0
    return fuzz.ratio(key_a, key_b)


def is_likely_duplicate(a: CanonicalTransaction, b: CanonicalTransaction,
                        threshold: float = MERCHANT_SIMILARITY_THRESHOLD) -> bool:
    """Same date and amount, and similar merchant names when both have one."""
    if a.amount != b.amount or a.date != b.date:
        return False
    return merchant_similarity(a, b) >= threshold


def find_duplicates(
    imported: Sequence[CanonicalTransaction],
    existing: Sequence[CanonicalTransaction],
    threshold: float = MERCHANT_SIMILARITY_THRESHOLD,
) -> List[Tuple[CanonicalTransaction, CanonicalTransaction, float]]:
    """
    Match newly imported transactions against already stored ones.

    Args:
        imported: Transactions from the current import
        existing: Previously stored transactions
        threshold: Minimum merchant similarity (0-100)

    Returns:
        List of (imported, existing, score) tuples, highest score first
    """
    candidates = []
    for new_tx in imported:
        for old_tx in existing:
            if new_tx.amount != old_tx.amount or new_tx.date != old_tx.date:
                continue
            score = merchant_similarity(new_tx, old_tx)
            if score >= threshold:
                candidates.append((new_tx, old_tx, score))

    candidates.sort(key=lambda candidate: candidate[2], reverse=True)
    return candidates
