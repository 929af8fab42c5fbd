import logging
import re
from typing import List, Tuple

from cdm import DiffLine, DiffPart, LineDiffResult

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r'\r?\n')
# Element and component separators that end a segment id: X12 '*' '>' ':', EDIFACT '+' ':', pipe-delimited '|'.
_LEADING_TOKEN = re.compile(r'[*+|:>]')

def _split_lines(text: str) -> List[str]:
    return _LINE_BREAK.split(text) if text else []

def _lcs_table(a, b) -> List[List[int]]:
    m, n = len(a), len(b)
    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        row, prev = table[i], table[i - 1]
        item = a[i - 1]
        for j in range(1, n + 1):
            if item == b[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(row[j - 1], prev[j])
    return table

def _backtrack(table: List[List[int]], a, b) -> List[Tuple[str, int, int]]:
    """
    Walks the LCS table from the bottom-right corner.

    Yields ('SAME', i, j), ('ADDED', None, j) or ('REMOVED', i, None) steps in document
    order, with 1-based indices. Ties prefer an insertion, so a substitution comes out
    as REMOVED followed by ADDED.
    """
    steps = []
    i, j = len(a), len(b)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and a[i - 1] == b[j - 1]:
            steps.append(('SAME', i, j))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            steps.append(('ADDED', None, j))
            j -= 1
        else:
            steps.append(('REMOVED', i, None))
            i -= 1
    steps.reverse()
    return steps

def compute_char_diff(text_a: str, text_b: str) -> List[DiffPart]:
    """Character-level LCS diff with adjacent runs of the same kind merged."""
    if text_a == text_b:
        return [DiffPart(type='SAME', value=text_a)]
    if not text_a:
        return [DiffPart(type='ADDED', value=text_b)]
    if not text_b:
        return [DiffPart(type='REMOVED', value=text_a)]

    table = _lcs_table(text_a, text_b)
    runs: List[List[str]] = []
    for kind, i, j in _backtrack(table, text_a, text_b):
        char = text_b[j - 1] if kind == 'ADDED' else text_a[i - 1]
        if runs and runs[-1][0] == kind:
            runs[-1][1] += char
        else:
            runs.append([kind, char])
    return [DiffPart(type=kind, value=value) for kind, value in runs]

def _leading_token(line: str) -> str:
    return _LEADING_TOKEN.split(line, maxsplit=1)[0]

def _is_substitution(removed: str, added: str) -> bool:
    # Plain text lines without any separator are always paired.
    if not _LEADING_TOKEN.search(removed) and not _LEADING_TOKEN.search(added):
        return True
    token = _leading_token(removed)
    return bool(token) and token == _leading_token(added)

def compute_line_diff(text_a: str, text_b: str) -> LineDiffResult:
    """
    Aligns two texts line by line.

    Both sides come back with equal length: insertions leave an EMPTY gap on the left,
    deletions an EMPTY gap on the right. A deletion immediately followed by an insertion
    of a line with the same segment id is reported as one MODIFIED pair carrying a
    character-level sub-diff.
    """
    lines_a = _split_lines(text_a)
    lines_b = _split_lines(text_b)
    steps = _backtrack(_lcs_table(lines_a, lines_b), lines_a, lines_b)

    left: List[DiffLine] = []
    right: List[DiffLine] = []
    change_count = 0
    k = 0
    while k < len(steps):
        kind, i, j = steps[k]

        if kind == 'SAME':
            left.append(DiffLine(index=i, content=lines_a[i - 1], type='SAME'))
            right.append(DiffLine(index=j, content=lines_b[j - 1], type='SAME'))
            k += 1
            continue

        change_count += 1
        if kind == 'REMOVED' and k + 1 < len(steps) and steps[k + 1][0] == 'ADDED':
            next_j = steps[k + 1][2]
            removed, added = lines_a[i - 1], lines_b[next_j - 1]
            if _is_substitution(removed, added):
                parts = compute_char_diff(removed, added)
                left.append(DiffLine(index=i, content=removed, type='MODIFIED',
                                     parts=[p for p in parts if p.type != 'ADDED']))
                right.append(DiffLine(index=next_j, content=added, type='MODIFIED',
                                      parts=[p for p in parts if p.type != 'REMOVED']))
                k += 2
                continue

        if kind == 'REMOVED':
            left.append(DiffLine(index=i, content=lines_a[i - 1], type='REMOVED'))
            right.append(DiffLine(type='EMPTY'))
        else:
            left.append(DiffLine(type='EMPTY'))
            right.append(DiffLine(index=j, content=lines_b[j - 1], type='ADDED'))
        k += 1

    logger.debug(f"Line diff: {len(lines_a)} vs {len(lines_b)} lines, {change_count} changes.")
    return LineDiffResult(left_lines=left, right_lines=right, change_count=change_count)
