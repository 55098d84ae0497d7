"""User- and operator-facing message texts."""

# ── End users ────────────────────────────────────────────────────────────────
BLOCKED_NOTICE = "⛔ You have been blocked and cannot send messages."
PERMANENT_BLOCK_NOTICE = "⛔ You have been permanently blocked and cannot send messages."
APPEAL_BUTTON = "🙋 Blocked by mistake? Appeal"
APPEAL_PROMPT = "✍️ Please type your appeal message:"
APPEAL_SENT = "📨 Your appeal has been sent. Remaining appeals: {remaining}."
APPEAL_LIMIT_REACHED = "⛔ You have used all your appeals and are now permanently blocked."
NOT_BLOCKED = "✅ You are not blocked. Just send your message."

# ── Operator ─────────────────────────────────────────────────────────────────
USER_STARTED = "👤 User {name} (ID: {user_id}) started the bot.\n\nChoose an action:"
BAN_BUTTON = "🚫 Ban"
UNBAN_BUTTON = "✅ Unban"
APPEAL_RECEIVED = "📣 User {user_id} submitted an appeal ({count}/{limit}):\n\n{text}"
BANNED = "🚫 User ID {user_id} has been banned."
ALREADY_BANNED = "ℹ️ User ID {user_id} is already banned."
UNBANNED = "✅ User ID {user_id} has been unbanned."
NOT_BANNED = "ℹ️ User ID {user_id} was not banned; appeal count reset."
BAN_LIST = "🚫 Banned users: {users}"
NO_BANS = "✅ No users are currently banned."
USAGE = "Usage: {command} <user_id>\nFor example: {command} 123456"
INVALID_USER_ID = "❌ Invalid Telegram user ID: {value}"
STORE_FAILURE = "❌ Could not update the ban list, please try again."
OPERATOR_HELP = (
    "📖 Operator commands:\n"
    "/ban <user_id> — ban a user\n"
    "/unban <user_id> — lift a ban and reset appeals\n"
    "/getbans — list banned users\n\n"
    "Reply to a forwarded message to answer its sender."
)

# ── Manager bot ──────────────────────────────────────────────────────────────
MANAGER_HELP = (
    "🤖 Relay bot manager\n"
    "/newbot <token> — start relaying through your bot\n"
    "/deletebot <token> — stop and remove a bot\n"
    "/mybots — list your bots"
)
NEWBOT_USAGE = "Usage: /newbot <token>"
DELETEBOT_USAGE = "Usage: /deletebot <token>"
BOT_CREATED = "✅ Bot @{username} is now relaying messages to you."
BOT_ALREADY_RUNNING = "ℹ️ Bot {token_hint} is already running."
BOT_CREATE_FAILED = "❌ Failed to create new bot: {reason}"
BOT_DELETED = "🗑️ Bot {token_hint} deleted."
BOT_NOT_FOUND = "ℹ️ No bot registered with token {token_hint}."
BOT_DELETE_DENIED = "⛔ Only the bot's operator can delete it."
BOT_DELETE_FAILED = "❌ Failed to delete bot: {reason}"
MY_BOTS = "🤖 Your bots:\n{bots}"
NO_BOTS = "You have no bots yet. Use /newbot <token> to add one."
