"""User-facing Telegram message texts."""

from __future__ import annotations

from questhub.db.models import Achievement, Rank


def mission_completed(mission_title: str) -> str:
    return f"✅ Задание «{mission_title}» выполнено."


def quiz_passed(mission_title: str) -> str:
    return f"✅ Квиз «{mission_title}» пройден."


def submission_approved(mission_title: str, experience: int, mana: int) -> str:
    text = f"✅ Ваша заявка по заданию «{mission_title}» одобрена!"
    rewards = []
    if experience > 0:
        rewards.append(f"{experience} опыта")
    if mana > 0:
        rewards.append(f"{mana} маны")
    if rewards:
        text += f"\n\nВам начислено: {', '.join(rewards)}."
    return text


def submission_rejected(mission_title: str, comment: str | None) -> str:
    text = f"❌ Ваша заявка по заданию «{mission_title}» отклонена."
    if comment:
        text += f"\n\nКомментарий модератора: {comment}"
    return text


def achievement_unlocked(achievement: Achievement) -> str:
    text = f"🎉 Поздравляем! Вы получили достижение «{achievement.name}»!"
    if achievement.mana_reward > 0:
        text += f"\n\nВам начислено: {achievement.mana_reward} маны."
    return text


def rank_changed(rank: Rank) -> str:
    return f"⭐ Ваш новый ранг: «{rank.title}»."
