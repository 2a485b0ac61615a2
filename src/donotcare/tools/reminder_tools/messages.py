import random
from typing import Optional, Sequence

from donotcare.core.status import Mode

TITLES = {
    Mode.DO_NOT_CARE: "💭 Do Not Care",
    Mode.FOCUS: "🎯 Focus",
    Mode.CARING: "Do Not Care",
}

DO_NOT_CARE_MESSAGES = (
    "Remember: you don't care right now 💭",
    "Keep not caring - you're doing great 🌟",
    "Stay in your don't care zone 🧘",
    "Don't care mode: fully active ✨",
    "You're mastering the art of not caring 🎯",
    "Caring is optional today 🦋",
    "Not caring is your superpower 💪",
    "Embrace the freedom of not caring 🕊️",
    "Your energy is precious - save it 💎",
    "Not your problem, not your concern 🚫",
    "Let it go, you don't care 🍃",
    "Not your circus, not your monkeys 🎪",
    "Your peace matters more 🕊️",
    "Choose your battles - this isn't one ⚔️",
    "Save your energy for what matters 💫",
)

FOCUS_MESSAGES = (
    "Still on it? Stay focused 🎯",
    "One thing at a time 🧠",
    "Back to the task at hand 📌",
    "Deep work in progress - keep going 🔒",
    "Distractions can wait ⏳",
    "You chose focus - honour it 💡",
    "Breathe, then return to the work 🌬️",
    "Small steps, steady progress 🪜",
)

MESSAGE_POOLS = {
    Mode.DO_NOT_CARE: DO_NOT_CARE_MESSAGES,
    Mode.FOCUS: FOCUS_MESSAGES,
    Mode.CARING: (),
}


def pick_message(pool: Sequence[str], rng: Optional[random.Random] = None) -> str:
    if not pool:
        return DO_NOT_CARE_MESSAGES[0]
    return (rng or random).choice(pool)
