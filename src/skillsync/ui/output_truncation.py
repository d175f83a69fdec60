from __future__ import annotations

TRUNCATION_MARKER = "....."
DEFAULT_DIAGNOSTIC_LINES = 12


def split_line_limit(line_limit: int) -> tuple[int, int]:
    """Split a line limit into head/tail windows.

    The tail gets the extra line for odd limits since git reports the fatal
    error last.
    """
    if line_limit <= 0:
        return 0, 0
    if line_limit == 1:
        return 0, 1

    head_lines = line_limit // 2
    return head_lines, line_limit - head_lines


def truncate_lines(
    lines: list[str],
    line_limit: int,
    *,
    marker: str = TRUNCATION_MARKER,
) -> tuple[list[str], bool]:
    """Truncate ``lines`` to head + marker + tail windows.

    Returns the potentially truncated lines and whether truncation occurred.
    """
    all_lines = list(lines)
    if line_limit < 0 or len(all_lines) <= line_limit:
        return all_lines, False

    head_lines, tail_lines = split_line_limit(line_limit)
    hidden = len(all_lines) - head_lines - tail_lines
    truncated = all_lines[:head_lines]
    truncated.append(f"{marker} {hidden} {'line' if hidden == 1 else 'lines'} omitted {marker}")
    if tail_lines > 0:
        truncated.extend(all_lines[-tail_lines:])
    return truncated, True


def truncate_diagnostic(text: str, line_limit: int = DEFAULT_DIAGNOSTIC_LINES) -> str:
    truncated, _ = truncate_lines(text.splitlines(), line_limit)
    return "\n".join(truncated)
