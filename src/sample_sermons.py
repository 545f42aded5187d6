"""Sample sermons bundled with the client, used when generation is unavailable."""

import random

from khutba_models import API_BASE_URL, Sermon, resolve_audio_url

_SAMPLE_AUDIO = (
    "/audio/the-transformative-power-of-patience-a-journey-of-self-discovery"
    "-and-unity_with_background.wav"
)


def _sample(title: str, text: str) -> Sermon:
    return Sermon(
        audio_url=_SAMPLE_AUDIO,
        text=text,
        title=title,
        full_audio_url=resolve_audio_url(_SAMPLE_AUDIO, API_BASE_URL),
    )


SAMPLE_SERMONS: tuple[Sermon, ...] = (
    _sample(
        "The Virtue of Patience in Islam",
        "In the name of Allah, the Most Gracious, the Most Merciful. Today, we reflect on "
        "the virtue of patience in Islam. Patience, or 'sabr' in Arabic, is mentioned over "
        "90 times in the Quran, highlighting its significance in our faith. The Prophet "
        "Muhammad (peace be upon him) said, 'Patience is light.' Through patience, we find "
        "strength in hardship, clarity in confusion, and peace in turmoil. Let us remember "
        "that Allah is with those who are patient, as mentioned in Surah Al-Baqarah: 'O you "
        "who have believed, seek help through patience and prayer. Indeed, Allah is with "
        "the patient.' As we face life's challenges, let us cultivate patience in our "
        "hearts, knowing that with every difficulty comes ease.",
    ),
    _sample(
        "Managing Anger: The Islamic Approach to Emotional Control",
        "Bismillah. The Prophet Muhammad (peace be upon him) said: 'The strong person is "
        "not the one who overcomes people with his strength, but the one who controls "
        "himself when angry.' Today we explore how controlling our anger leads to inner "
        "peace and stronger community bonds. Through mindfulness and remembrance of Allah, "
        "we can transform anger into patience and understanding. Remember the words from "
        "the Quran: 'Those who spend (in Allah's way) in prosperity and in adversity, who "
        "restrain anger and pardon people. And Allah loves the doers of good.'",
    ),
    _sample(
        "The Power of Gratitude in Islamic Tradition",
        "In the name of Allah, the Most Compassionate, the Most Merciful. Gratitude (shukr) "
        "is central to our faith. The Quran repeatedly reminds us, 'If you are grateful, I "
        "will surely increase you [in favor].' By recognizing and appreciating Allah's "
        "countless blessings, we cultivate contentment and resilience. Gratitude transforms "
        "our perspective, allowing us to see challenges as opportunities for growth rather "
        "than obstacles. Let us practice gratitude daily through our prayers, actions, and "
        "interactions with others.",
    ),
)


def pick_sample_sermon(rng: random.Random | None = None) -> Sermon:
    """Pick one sample sermon uniformly at random."""
    rng = rng or random
    return SAMPLE_SERMONS[rng.randrange(len(SAMPLE_SERMONS))]
