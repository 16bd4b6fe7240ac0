import json
import re

from xcstrings_translator.catalog_model import Catalog

# Xcode puts a space on both sides of the key separator ("key" : value).
XCODE_SEPARATORS = (',', ' : ')

# json.loads turns escaped surrogate pairs into one character, so any
# surrogate left in a decoded string is unpaired.
LONE_SURROGATE_PATTERN = re.compile('[\ud800-\udfff]')


def _escape_lone_surrogate(match: re.Match) -> str:
    return '\\u%04x' % ord(match.group())


def serialize_catalog(catalog: Catalog) -> str:
    """
    Render a catalog exactly the way Xcode writes ``.xcstrings`` files.

    The output is two-space indented JSON with non-ASCII text kept as is. Only
    the separator after object keys changes, so colons inside values are never
    touched. Unpaired surrogates are written as ``\\uXXXX`` escapes so the text
    can always be encoded as UTF-8.

    The only normalization applied is sorting attribute names inside each
    object; string keys and language codes keep their order.

    Args:
        catalog: The catalog to render.

    Returns:
        str: The file content, without a trailing newline.
    """
    text = json.dumps(catalog.to_dict(), ensure_ascii=False, indent=2, separators=XCODE_SEPARATORS)
    return LONE_SURROGATE_PATTERN.sub(_escape_lone_surrogate, text)
