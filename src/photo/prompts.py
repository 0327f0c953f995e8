"""Prompt and caption text for photo generation."""

from __future__ import annotations


def build_prompt(subject_name: str) -> str:
    name = " ".join((subject_name or "").split())
    return (
        f"Add the professional golfer {name} standing on the right side of the frame, "
        "next to the person in the photo, as if posing together for a friendly photo on a golf course. "
        "Keep the original person's face, body and clothing unchanged. "
        "Photorealistic, natural lighting, matching perspective and scale."
    )


def build_caption(subject_name: str) -> str:
    return f"You & {' '.join((subject_name or '').split())}"


def build_subtitle(event_title: str) -> str:
    title = (event_title or "").strip()
    if not title:
        return "Golf's greatest photo op"
    return f"{title} · Golf's greatest photo op"
