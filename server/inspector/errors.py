"""上传处理错误类型 — 每个错误携带面向用户的提示文案。"""

from __future__ import annotations


class IntakeError(Exception):
    """上传流水线中某一步的失败。

    message 直接展示给用户，title 用于客户端通知标题。
    """

    title = "Upload Error"
    default_message = "Something went wrong while processing the file."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidType(IntakeError):
    default_message = "Invalid file type. Please upload a PNG, JPG, GIF, or WEBP image."

    def __init__(self, content_type: str, message: str | None = None) -> None:
        self.content_type = content_type
        super().__init__(message)


class TooLarge(IntakeError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"File is too large. Maximum size is {limit / (1024 * 1024):g}MB.")


class ReadError(IntakeError):
    title = "File Read Error"
    default_message = "Failed to read file."


class DecodeError(IntakeError):
    title = "Image Load Error"
    default_message = "Could not load image to get dimensions. The file might be corrupted."


class AnalysisError(IntakeError):
    """远程分析失败 — 已计算的文件信息保留。"""

    title = "Analysis Error"
    default_message = (
        "Failed to analyze image. The AI model might be unavailable or encountered an issue."
    )


class AnalysisUnavailable(AnalysisError):
    pass


class AnalysisTimeout(AnalysisError):
    default_message = "Image analysis timed out. The AI model took too long to respond."
