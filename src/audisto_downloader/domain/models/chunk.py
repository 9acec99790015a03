from dataclasses import dataclass


def split_rows(text: str) -> list[str]:
    """
    Split a TSV body into rows.

    Rows end with ``\\n``; a trailing ``\\r`` is dropped from each row and a
    final terminator does not produce an empty row. Other Unicode line breaks
    are left alone since they may occur inside field values.

    Args:
        text: Decoded response body

    Returns:
        Rows without their terminators
    """
    if not text:
        return []
    rows = text.split("\n")
    if rows[-1] == "":
        rows.pop()
    return [row[:-1] if row.endswith("\r") else row for row in rows]


@dataclass(frozen=True)
class ChunkResponse:
    """
    Raw answer to a chunk or probe request.

    Attributes:
        status_code: HTTP status code
        body: Response body, already decompressed
    """

    status_code: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def rows(self) -> list[str]:
        """
        Decode the body as UTF-8 and split it into rows.

        Raises:
            UnicodeDecodeError: If the body is not valid UTF-8
        """
        return split_rows(self.body.decode("utf-8"))
