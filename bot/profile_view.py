from app.qr import render_qr_png

from bot.keyboards import main_keyboard


def render_profile_caption(profile: dict, label: str) -> str:
    name = f"{profile.get('first_name', '')} {profile.get('last_name', '')}".strip()
    return "\n".join(
        [
            label,
            f"Employee: {name}",
            f"Role: {profile.get('role', '')}",
            f"Points: {profile.get('points', 0)}",
            f"Scans: {profile.get('scan_count', 0)}",
            "QR embedded in image.",
        ]
    )


async def send_profile(message, profile: dict, label: str):
    qr_png = render_qr_png(profile["qr_url"])
    await message.reply_photo(
        photo=qr_png,
        caption=render_profile_caption(profile, label),
        reply_markup=main_keyboard(),
    )
