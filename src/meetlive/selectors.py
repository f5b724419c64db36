# Google Meet DOM hooks. These drift with UI releases; keep them in one place.

PEOPLE_BUTTON = 'button[aria-label="People"][data-panel-id="1"]'
PEOPLE_BUTTON_FALLBACKS = [
    'button[aria-label^="People"]',
    'button[aria-label="People"]',
    'button[data-panel-id="1"]',
]

PARTICIPANT_LIST = '[role="list"]'
PARTICIPANT_LIST_CHILDREN = ":scope > *"
PARTICIPANT_ITEM = 'div[role="listitem"][data-participant-id]'
PARTICIPANT_ID_ATTRIBUTE = "data-participant-id"
CALL_NAME = "[jscontroller=yEvoid]"

NAME_SELECTORS = [
    "[data-self-name]",
    ".zWGUib",
    ".cS7aqe.N2K3jd",
    '[data-tooltip*="name"]',
    ".participant-name",
]

SELF_MARKER = ".NnTWjc"
SELF_MARKER_TEXT = "(You)"
SELF_SPEAKING_INDICATOR = ".jb1oQc.yDdjGe"

MIC_BUTTONS = 'button[aria-label*="microphone"], button[aria-label*="Microphone"]'

LEAVE_BUTTON = 'button[aria-label="Leave call"], button[aria-label="End call"]'
LEAVE_CONFIRM_BUTTONS = [
    'button:has-text("Leave")',
    'button:has-text("End call")',
    'button:has-text("Exit")',
]

# Join flow
NAME_INPUT = 'input[type="text"][aria-label="Your name"]'
MIC_OFF_BUTTON = '[aria-label*="Turn off microphone"]'
CAMERA_OFF_BUTTON = '[aria-label*="Turn off camera"]'
ASK_TO_JOIN_BUTTON = '//button[.//span[text()="Ask to join"]]'
ADMITTED_MARKER = '//button[@aria-label="Leave call"]'
