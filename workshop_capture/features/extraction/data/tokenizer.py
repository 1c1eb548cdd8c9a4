import tiktoken
from ..domain.interfaces import ITokenizer


class TiktokenTokenizer(ITokenizer):
    """
    Token counts are only used to size windows, so a close approximation of the
    Qwen vocabulary (cl100k) is good enough.
    """

    def __init__(self, encoding: str = "cl100k_base"):
        self.enc = tiktoken.get_encoding(encoding)

    def count_tokens(self, text: str) -> int:
        if not text: return 0
        return len(self.enc.encode(text))
