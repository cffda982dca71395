"""Shared constants for the automation engine."""

STATE_IDLE = "idle"
STATE_LAUNCHING = "launching"
STATE_CONNECTING = "connecting"
STATE_FILLING_FORM = "filling_form"
STATE_AWAITING_VERIFICATION = "awaiting_verification"
STATE_RESUMING = "resuming"
STATE_UPLOADING = "uploading"
STATE_AWAITING_FINAL_CONFIRMATION = "awaiting_final_confirmation"
STATE_COMPLETED = "completed"
STATE_FAILED = "failed"
STATE_CANCELLED = "cancelled"

TERMINAL_STATES = frozenset({STATE_COMPLETED, STATE_FAILED, STATE_CANCELLED})

# Forward edges between non-terminal states. Any non-terminal state may also
# move to a terminal one.
STATE_TRANSITIONS = {
    STATE_IDLE: (STATE_LAUNCHING,),
    STATE_LAUNCHING: (STATE_CONNECTING, STATE_FILLING_FORM),
    STATE_CONNECTING: (STATE_FILLING_FORM,),
    STATE_FILLING_FORM: (
        STATE_AWAITING_VERIFICATION,
        STATE_UPLOADING,
        STATE_AWAITING_FINAL_CONFIRMATION,
    ),
    STATE_AWAITING_VERIFICATION: (STATE_RESUMING,),
    STATE_RESUMING: (
        STATE_AWAITING_VERIFICATION,
        STATE_UPLOADING,
        STATE_AWAITING_FINAL_CONFIRMATION,
    ),
    STATE_UPLOADING: (STATE_AWAITING_FINAL_CONFIRMATION,),
    STATE_AWAITING_FINAL_CONFIRMATION: (),
}

STRATEGY_ATTACH_EXISTING = "attach_existing"
STRATEGY_PERSISTENT_PROFILE = "persistent_profile"
STRATEGY_EPHEMERAL = "ephemeral"

CONNECTION_ORDER = (
    STRATEGY_ATTACH_EXISTING,
    STRATEGY_PERSISTENT_PROFILE,
    STRATEGY_EPHEMERAL,
)

HANDOFF_RESUMED = "resumed"
HANDOFF_TIMED_OUT = "timed_out"
HANDOFF_CANCELLED = "cancelled"

CATEGORY_PROFILES = "profiles"
CATEGORY_IP_ASSETS = "ip_assets"
SUBCATEGORY_ID_CARDS = "id_cards"
SUBCATEGORY_AUTH_DOCS = "auth_docs"
SUBCATEGORY_PROOF_DOCS = "proof_docs"

STAGING_LAYOUT = {
    CATEGORY_PROFILES: (SUBCATEGORY_ID_CARDS,),
    CATEGORY_IP_ASSETS: (SUBCATEGORY_AUTH_DOCS, SUBCATEGORY_PROOF_DOCS),
}

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".gif")
DOCUMENT_EXTENSIONS = (".pdf",)

CASE_STATUS_NEW = "新建"
CASE_STATUS_SUBMITTED = "已提交"

DEFAULT_REGION = "中国大陆"
DEFAULT_EQUITY_TYPE = "著作权"
DEFAULT_ASSET_STATUS = "待认证"

BROWSER_BINARY_CANDIDATES = (
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "microsoft-edge",
    "msedge",
    "chrome",
)

BROWSER_INSTALL_PATHS = (
    r"C:\Program Files\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
)
