"""
Telegram Bot Frontend for Dompet

This is the interface household members interact with daily: they type
transactions as plain text, confirm them with a tap, and ask for
reports with short commands.

DESIGN PRINCIPLES:
1. Simple, short commands in Indonesian
2. Explicit confirmation before anything is saved
3. Clear error messages in simple language
4. Scheduled recaps arrive without being asked

The bot enforces the human-in-the-loop principle:
- Member sees how the message was understood
- Member can change the category
- Nothing is saved without an explicit "Simpan" tap

Run with:  python -m app.main
"""

import logging
from typing import Optional

import structlog
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from dompet.config import get_settings, validate_all_settings
from dompet.conversation import PendingActionExpired, TransactionParseError
from dompet.ledger import PermissionDenied
from dompet.models.categories import categories_for, category_display
from dompet.models.ledger import PendingTransaction, TransactionKind
from dompet.models.notification import NotificationKind, NotificationPreferences
from dompet.notifications.formatting import format_confirmation, format_currency, md_escape
from dompet.notifications.transport import TelegramTransport
from dompet.orchestrator import AppComponents, create_app_components
from dompet.services.storage import DuplicateError, NotFoundError, StoreUnavailable


logger = structlog.get_logger("dompet.bot")

COMPONENTS_KEY = "components"

HELP_TEXT = (
    "📖 *Cara Pakai Dompet*\n\n"
    "💸 Catat pengeluaran: ketik `makan siang 50000` atau `bayar parkir 5rb`\n"
    "💰 Catat pemasukan: ketik `gaji 5 juta` atau `+ bonus 500rb`\n"
    "/expense [teks] atau /income [teks] - Paksa jenis transaksi\n\n"
    "📊 *Laporan*\n"
    "/laporan - Ringkasan hari ini\n"
    "/laporan\\_keluarga - Ringkasan hari ini (keluarga)\n"
    "/bulanan - Ringkasan bulan ini\n"
    "/bulanan\\_keluarga - Ringkasan bulan ini (keluarga)\n\n"
    "⚙️ *Lainnya*\n"
    "/settings - Atur notifikasi\n"
    "/rename [nama] - Ganti nama tampilan\n"
    "/members - Daftar anggota\n"
    "/whoami - Info akun Anda\n"
    "/sheet - Link spreadsheet\n"
    "/fixsheet - Buat ulang Summary sheet (admin)"
)

NOT_REGISTERED_TEXT = (
    "👋 Halo!\n\n"
    "Sepertinya Anda belum terdaftar. Silakan daftar terlebih dahulu:\n\n"
    "📝 Ketik: /register [nama Anda]\n\n"
    "Contoh: /register Papa"
)

SETTINGS_LABELS = {
    NotificationKind.DAILY: "Rekap Harian",
    NotificationKind.WEEKLY: "Rekap Mingguan",
    NotificationKind.MONTHLY: "Insights Bulanan",
}


def get_components(context: ContextTypes.DEFAULT_TYPE) -> AppComponents:
    return context.application.bot_data[COMPONENTS_KEY]


# =============================================================================
# KEYBOARDS
# =============================================================================

def confirmation_keyboard(pending: PendingTransaction) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("✅ Simpan", callback_data=f"save:{pending.token}"),
            InlineKeyboardButton("❌ Batal", callback_data=f"cancel:{pending.token}"),
        ],
        [InlineKeyboardButton("📁 Ganti Kategori", callback_data=f"cats:{pending.token}")],
    ])


def category_keyboard(pending: PendingTransaction) -> InlineKeyboardMarkup:
    buttons = [
        InlineKeyboardButton(info.display, callback_data=f"cat:{pending.token}:{key}")
        for key, info in categories_for(pending.draft.kind).items()
    ]
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append([InlineKeyboardButton("🔙 Kembali", callback_data=f"back:{pending.token}")])
    return InlineKeyboardMarkup(rows)


def settings_keyboard(prefs: NotificationPreferences) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(
            f"{'✅' if prefs.is_enabled(kind) else '☑️'} {label}",
            callback_data=f"settings:{kind.value}",
        )]
        for kind, label in SETTINGS_LABELS.items()
    ])


# =============================================================================
# MEMBER COMMANDS
# =============================================================================

async def require_member(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    components = get_components(context)
    if await components.members.is_authorized(str(update.effective_user.id)):
        return True
    await update.effective_message.reply_text(NOT_REGISTERED_TEXT)
    return False


async def require_admin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    components = get_components(context)
    if await components.members.is_admin(str(update.effective_user.id)):
        return True
    await update.effective_message.reply_text("⛔ Command ini hanya untuk admin.")
    return False


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    components = get_components(context)
    user = update.effective_user
    if not await components.members.is_authorized(str(user.id)):
        await update.effective_message.reply_text(NOT_REGISTERED_TEXT)
        return
    name = await components.members.display_name(str(user.id))
    await update.effective_message.reply_text(
        f"👋 Selamat datang kembali, {md_escape(name)}!\n\n{HELP_TEXT}",
        parse_mode=ParseMode.MARKDOWN,
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.effective_message.reply_text(HELP_TEXT, parse_mode=ParseMode.MARKDOWN)


async def register_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    components = get_components(context)
    user = update.effective_user
    name = " ".join(context.args).strip() or user.first_name or "User"

    try:
        member = await components.members.register(str(user.id), name)
    except DuplicateError:
        await update.effective_message.reply_text("ℹ️ Anda sudah terdaftar.")
        return

    role_text = "👑 Anda terdaftar sebagai *admin*." if member.is_admin else "✅ Anda terdaftar sebagai anggota."
    await update.effective_message.reply_text(
        f"🎉 Selamat datang, {md_escape(member.display_name)}!\n\n{role_text}\n\nKetik /help untuk panduan.",
        parse_mode=ParseMode.MARKDOWN,
    )


async def whoami_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_member(update, context):
        return
    member = await get_components(context).members.get(str(update.effective_user.id))
    await update.effective_message.reply_text(
        f"👤 *{md_escape(member.display_name)}*\n"
        f"🆔 `{member.member_id}`\n"
        f"🎖 {'Admin' if member.is_admin else 'Anggota'}",
        parse_mode=ParseMode.MARKDOWN,
    )


async def members_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_member(update, context):
        return
    members = await get_components(context).members.list_members()
    lines = ["👨‍👩‍👧 *Anggota Keluarga*", ""]
    for i, member in enumerate(members, start=1):
        badge = " 👑" if member.is_admin else ""
        lines.append(f"{i}. {md_escape(member.display_name)}{badge} (`{member.member_id}`)")
    await update.effective_message.reply_text("\n".join(lines), parse_mode=ParseMode.MARKDOWN)


async def rename_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_member(update, context):
        return
    new_name = " ".join(context.args).strip()
    if not new_name:
        await update.effective_message.reply_text("📝 Ketik: /rename [nama baru]")
        return
    member = await get_components(context).members.rename(str(update.effective_user.id), new_name)
    await update.effective_message.reply_text(f"✅ Nama Anda sekarang: {member.display_name}")


async def removemember_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_admin(update, context):
        return
    if not context.args:
        await update.effective_message.reply_text("📝 Ketik: /removemember [user id]\n\nLihat id di /members")
        return

    components = get_components(context)
    try:
        removed = await components.members.remove(str(update.effective_user.id), context.args[0])
    except PermissionDenied as e:
        await update.effective_message.reply_text(f"⛔ {e}")
        return
    except NotFoundError:
        await update.effective_message.reply_text("❌ Anggota tidak ditemukan.")
        return
    await update.effective_message.reply_text(f"✅ {removed.display_name} telah dihapus dari keluarga.")


async def sheet_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_member(update, context):
        return
    client = get_components(context).sheets_client
    if client is None:
        await update.effective_message.reply_text("ℹ️ Spreadsheet belum dikonfigurasi.")
        return
    await update.effective_message.reply_text(f"📊 Spreadsheet: {client.spreadsheet_url}")


# =============================================================================
# REPORTS
# =============================================================================

async def _send_report(update: Update, context: ContextTypes.DEFAULT_TYPE, monthly: bool, family: bool) -> None:
    if not await require_member(update, context):
        return
    reports = get_components(context).reports
    member_id = str(update.effective_user.id)
    try:
        if monthly:
            report = await reports.monthly_report(member_id, family=family)
        else:
            report = await reports.daily_report(member_id, family=family)
    except StoreUnavailable:
        logger.exception("report_failed", member_id=member_id)
        await update.effective_message.reply_text("❌ Gagal membaca data. Coba lagi nanti.")
        return

    if report.chart is not None:
        try:
            await update.effective_message.reply_photo(report.chart.url, caption=report.chart.caption)
        except TelegramError as e:
            # The text report still goes out without its chart
            logger.warning("report_chart_failed", member_id=member_id, error=str(e))
    await update.effective_message.reply_text(report.text, parse_mode=ParseMode.MARKDOWN)


async def laporan_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _send_report(update, context, monthly=False, family=False)


async def laporan_keluarga_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _send_report(update, context, monthly=False, family=True)


async def bulanan_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _send_report(update, context, monthly=True, family=False)


async def bulanan_keluarga_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _send_report(update, context, monthly=True, family=True)


async def fixsheet_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Admin: rebuild the Summary worksheet."""
    if not await require_admin(update, context):
        return
    client = get_components(context).sheets_client
    if client is None:
        await update.effective_message.reply_text("ℹ️ Spreadsheet belum dikonfigurasi.")
        return

    await update.effective_message.reply_text("🔧 Membuat ulang Summary sheet...")
    try:
        url = await client.recreate_summary_sheet()
    except StoreUnavailable:
        logger.exception("summary_sheet_failed")
        await update.effective_message.reply_text("❌ Gagal membuat ulang Summary sheet. Coba lagi nanti.")
        return
    await update.effective_message.reply_text(f"✅ Summary sheet berhasil dibuat ulang!\n\nLink: {url}")


async def kirim_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Admin: run a scheduled job now, e.g. /kirim daily."""
    if not await require_admin(update, context):
        return
    try:
        kind = NotificationKind((context.args or ["daily"])[0].lower())
    except ValueError:
        await update.effective_message.reply_text("📝 Ketik: /kirim [daily|weekly|monthly]")
        return

    report = await get_components(context).scheduler.trigger_now(kind)
    await update.effective_message.reply_text(
        f"📨 {kind.value}: {report.status.value}\n"
        f"terkirim {report.batch.sent}, dilewati {report.batch.skipped}, "
        f"gagal {report.batch.failed}, kosong {report.members_empty}, error {report.members_failed}"
    )


# =============================================================================
# SETTINGS
# =============================================================================

async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_member(update, context):
        return
    text, prefs = await get_components(context).settings.show(str(update.effective_user.id))
    await update.effective_message.reply_text(
        text,
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=settings_keyboard(prefs),
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

async def _propose(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    text: str,
    kind: Optional[TransactionKind] = None,
) -> None:
    components = get_components(context)
    message = update.effective_message

    try:
        pending = await components.transactions.propose(
            str(update.effective_user.id),
            str(message.chat_id),
            text,
            kind=kind,
        )
    except TransactionParseError:
        await message.reply_text(
            "❓ Maaf, saya kurang yakin memahami input Anda.\n\n"
            "Format yang disarankan:\n"
            "💸 Pengeluaran: \"makan siang 50000\" atau \"bayar parkir 5rb\"\n"
            "💰 Pemasukan: \"gaji 5 juta\" atau \"dapat bonus 500rb\""
        )
        return

    await message.reply_text(
        format_confirmation(pending.draft),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=confirmation_keyboard(pending),
    )


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await require_member(update, context):
        return
    await _propose(update, context, update.effective_message.text)


async def expense_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/expense makan 50000 records an expense whatever the wording."""
    if not await require_member(update, context):
        return
    text = " ".join(context.args).strip()
    if not text:
        await update.effective_message.reply_text(
            "💸 *Catat Pengeluaran*\n\n"
            "Kirim: /expense [deskripsi] [jumlah]\n\n"
            "Contoh:\n"
            "• /expense makan 50000\n"
            "Atau langsung: \"makan 50000\"",
            parse_mode=ParseMode.MARKDOWN,
        )
        return
    await _propose(update, context, text, TransactionKind.EXPENSE)


async def income_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/income gaji 5000000 records income whatever the wording."""
    if not await require_member(update, context):
        return
    text = " ".join(context.args).strip()
    if not text:
        await update.effective_message.reply_text(
            "💰 *Catat Pemasukan*\n\n"
            "Kirim: /income [deskripsi] [jumlah]\n\n"
            "Contoh:\n"
            "• /income gaji 5000000",
            parse_mode=ParseMode.MARKDOWN,
        )
        return
    await _propose(update, context, text, TransactionKind.INCOME)


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    components = get_components(context)
    data = query.data or ""
    action, _, rest = data.partition(":")
    member_id = str(query.from_user.id)

    if action == "settings":
        await query.answer()
        text, prefs = await components.settings.toggle(member_id, NotificationKind(rest))
        await query.edit_message_text(text, parse_mode=ParseMode.MARKDOWN, reply_markup=settings_keyboard(prefs))
        return

    token, _, category = rest.partition(":")
    flow = components.transactions
    try:
        if action == "save":
            entry = await flow.confirm(token)
            await query.answer("Tersimpan!")
            await query.edit_message_text(
                f"✅ Transaksi berhasil disimpan!\n\n"
                f"{format_currency(entry.amount)} - {category_display(entry.category, entry.kind)}"
            )
        elif action == "cancel":
            await flow.cancel(token)
            await query.answer()
            await query.edit_message_text("❌ Transaksi dibatalkan")
        elif action == "cats":
            pending = flow.get_pending(token)
            await query.answer()
            await query.edit_message_reply_markup(reply_markup=category_keyboard(pending))
        elif action == "cat":
            pending = await flow.change_category(token, category)
            await query.answer()
            await query.edit_message_text(
                format_confirmation(pending.draft),
                parse_mode=ParseMode.MARKDOWN,
                reply_markup=confirmation_keyboard(pending),
            )
        elif action == "back":
            pending = flow.get_pending(token)
            await query.answer()
            await query.edit_message_reply_markup(reply_markup=confirmation_keyboard(pending))
        else:
            await query.answer()
    except PendingActionExpired:
        await query.answer("Transaksi sudah kadaluarsa", show_alert=True)
    except StoreUnavailable:
        logger.exception("ledger_write_failed", member_id=member_id)
        await query.answer("Gagal menyimpan, coba lagi", show_alert=True)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("handler_error", error=str(context.error), exc_info=context.error)
    await get_components(context).audit_logger.log_error(
        error_type=type(context.error).__name__,
        error_message=str(context.error),
    )
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text("❌ Terjadi kesalahan saat memproses input Anda.")


# =============================================================================
# APPLICATION
# =============================================================================

async def post_init(application: Application) -> None:
    components: AppComponents = application.bot_data[COMPONENTS_KEY]
    components.scheduler.start()


async def post_shutdown(application: Application) -> None:
    components: AppComponents = application.bot_data[COMPONENTS_KEY]
    await components.scheduler.shutdown()


def build_application() -> Application:
    telegram_settings = get_settings().telegram
    application = (
        ApplicationBuilder()
        .token(telegram_settings.bot_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    transport = TelegramTransport(application.bot, default_parse_mode=telegram_settings.parse_mode)
    application.bot_data[COMPONENTS_KEY] = create_app_components(transport)

    commands = {
        "start": start_command,
        "help": help_command,
        "register": register_command,
        "whoami": whoami_command,
        "members": members_command,
        "rename": rename_command,
        "removemember": removemember_command,
        "sheet": sheet_command,
        "laporan": laporan_command,
        "laporan_keluarga": laporan_keluarga_command,
        "bulanan": bulanan_command,
        "bulanan_keluarga": bulanan_keluarga_command,
        "settings": settings_command,
        "kirim": kirim_command,
        "fixsheet": fixsheet_command,
        "expense": expense_command,
        "income": income_command,
    }
    for name, handler in commands.items():
        application.add_handler(CommandHandler(name, handler))

    application.add_handler(CallbackQueryHandler(handle_callback))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    application.add_error_handler(handle_error)
    return application


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    status = validate_all_settings()
    logger.info("settings_checked", **status)
    if not status.get("telegram"):
        raise SystemExit("Please set TELEGRAM_BOT_TOKEN in the environment to run the bot.")

    application = build_application()
    logger.info("bot_starting")
    application.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
