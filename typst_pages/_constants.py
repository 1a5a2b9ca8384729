"""Common literal values used across typst_pages.

Keeping the markup vocabulary in one place lets the writer, the directive
preprocessor, and the tests agree on label conventions without drifting.

Examples
--------
>>> from typst_pages import _constants
>>> _constants.PAGE_LABEL
'__page__'
>>> len(_constants.DOCUMENT_STRUCTURE)
7
"""

PAGE_LABEL = "__page__"

DOCUMENT_STRUCTURE = (
    "part",
    "chapter",
    "section",
    "subsection",
    "subsubsection",
    "paragraph",
    "subparagraph",
)

STYLE_ASSET = "typst-pages.typ"
CUSTOM_STYLE_PATH = "assets/custom.typ"
PREAMBLE_TEMPLATE = "preamble.typ.jinja"

DEBUG_ENV_VAR = "TYPST_PAGES_DEBUG"
VERSION_ENV_VAR = "TYPST_PAGES_VERSION"

COMPILER_STDOUT = "typst-pages.stdout"
COMPILER_STDERR = "typst-pages.stderr"
