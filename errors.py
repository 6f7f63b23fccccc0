"""
Исключения компрессора Хаффмана.
"""


class HuffmanError(Exception):
    pass


class EmptyInputError(HuffmanError):
    """Входной текст не содержит ни одного символа."""


class LossyEncodingError(HuffmanError):
    """Повторное кодирование текста не воспроизводит исходные байты."""


class MalformedArtifactError(HuffmanError, ValueError):
    """Поля сжатого файла противоречат друг другу или обрезаны."""


class DecodingInconsistencyError(HuffmanError):
    """Битовый поток не соответствует дереву, построенному по таблице частот."""
