from telegram import BotCommand

BTN_REGISTER = "Register"
BTN_MY_QR = "My QR"
BTN_SCAN = "Scan"

COMMANDS = [
    BotCommand("start", "Register or get help"),
    BotCommand("me", "Show your loyalty profile"),
    BotCommand("scan", "Simulate a scan (+10 points)"),
]

# Bot-originated scans, as opposed to "iphone" scans coming through the QR landing page.
BOT_SCAN_TYPE = "bot"

MSG_WELCOME = "Welcome! Press Register and send your employee ID."
MSG_ASK_EMPLOYEE_ID = "Send your employee ID to register."
MSG_EMPLOYEE_NOT_FOUND = "Employee not found. Check your ID."
MSG_NOT_REGISTERED = "No loyalty profile. Use Register."
MSG_EMPLOYEE_MISSING = "Employee data missing."
MSG_UNAVAILABLE = "Loyalty service is temporarily unavailable. Try again in a moment."
MSG_USE_BUTTONS = "Use the buttons: Register, My QR, Scan."

LABEL_REGISTERED = "Registered successfully"
LABEL_PROFILE = "Your loyalty profile"
LABEL_SCANNED = "Scan recorded (+10 points)"

ERROR_MESSAGES = {
    "employee_not_found": MSG_EMPLOYEE_NOT_FOUND,
    "not_registered": MSG_NOT_REGISTERED,
    "employee_missing": MSG_EMPLOYEE_MISSING,
    "unavailable": MSG_UNAVAILABLE,
    "store_unavailable": MSG_UNAVAILABLE,
}
