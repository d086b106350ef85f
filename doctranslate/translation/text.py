def normalize_text(text: str) -> str:
    """Undo OCR hard line-wrapping.

    Blank lines separate paragraphs. Lines inside a paragraph are trimmed and
    joined with a single space; paragraphs are joined with one blank line.
    Normalizing already-normalized text returns it unchanged.
    """
    paragraphs: list[str] = []
    current: list[str] = []
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if line:
            current.append(line)
        elif current:
            paragraphs.append(" ".join(current))
            current = []
    if current:
        paragraphs.append(" ".join(current))
    return "\n\n".join(paragraphs)
