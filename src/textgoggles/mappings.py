"""The default nickname table.

Entries are ``(name, pattern, replacement, hints)``. Order is priority:
when two patterns match overlapping text the earlier entry wins. Every
match of a pattern contains at least one of its hints (compared
case-insensitively), which keeps the pre-check exact.
"""

from __future__ import annotations

from .rules import PatternRule, PatternSource

NICKNAMES: tuple[tuple[str, str, str, tuple[str, ...]], ...] = (
    ("isis", r"\b(ISIS|ISIL|Islamic State)\b", "Evil Losers", ("isis", "isil", "islamic state")),
    (
        "hillary",
        r"\b(Hillary Clinton|Hillary Rodham Clinton|Mrs\. Clinton)\b",
        "Crooked Hillary",
        ("clinton",),
    ),
    ("cruz", r"\bTed Cruz\b", "Lyin' Ted", ("ted cruz",)),
    ("marco", r"\b(Marco Rubio|Rubio)\b", "Little Marco", ("rubio",)),
    ("jeb", r"\b(Jeb Bush|Jeb)\b", "Low Energy Jeb", ("jeb",)),
    ("warren", r"\bElizabeth Warren\b", "Goofy Pocahontas", ("elizabeth warren",)),
    ("lamb", r"\bConor Lamb\b", "Lamb the Sham", ("conor lamb",)),
    ("bannon", r"\bSteve Bannon\b", "Sloppy Steve", ("steve bannon",)),
    ("durbin", r"\bDick Durbin\b", "Dicky Durbin", ("dick durbin",)),
    ("feinstein", r"\bDianne Feinstein\b", "Sneaky Dianne Feinstein", ("dianne feinstein",)),
    ("flake", r"\bJeff Flake\b", "Jeff Flakey", ("jeff flake",)),
    ("franken", r"\bAl Franken\b", "Al Frankenstein", ("al franken",)),
    ("corker", r"\bBob Corker\b", "Liddle' Bob Corker", ("bob corker",)),
    ("kasich", r"\bJohn Kasich\b", "1 for 38 Kasich", ("john kasich",)),
    ("assad", r"\bBashar (Hafez )?al-Assad\b", "Animal Assad", ("al-assad",)),
    ("kelly", r"\bMegyn Kelly\b", "Crazy Megyn", ("megyn kelly",)),
    ("scarborough", r"\bJoe Scarborough\b", "Psycho Joe", ("joe scarborough",)),
    ("mika", r"\bMika Brzezinski\b", "Dumb as a Rock Mika", ("mika brzezinski",)),
    ("chucktodd", r"\bChuck Todd\b", "Sleepy Eyes Chuck Todd", ("chuck todd",)),
    ("jimacosta", r"\bJim Acosta\b", "Crazy Jim Acosta", ("jim acosta",)),
    ("coffee", r"\bcoffee\b", "covfefe", ("coffee",)),
    ("biden", r"\bJoe\s+Biden\b", "Sleepy Joe", ("biden",)),
    ("kamala", r"\bKamala\s+Harris\b", "Comrade Kamala", ("kamala",)),
    ("desantis", r"\bRon\s+DeSantis\b", "Ron DeSanctimonious", ("desantis",)),
    ("haley", r"\bNikki\s+Haley\b", "Birdbrain Nikki", ("haley",)),
    ("mcconnell", r"\bMitch\s+McConnell\b", "Old Crow Mitch", ("mcconnell",)),
    ("chao", r"\bElaine\s+Chao\b", "Coco Chow", ("chao",)),
    ("schiff", r"\bAdam\s+Schiff\b", "Shifty Schiff", ("schiff",)),
    ("pelosi", r"\bNancy\s+Pelosi\b", "Crazy Nancy", ("pelosi",)),
    ("schumer", r"\bChuck\s+Schumer\b", "Cryin' Chuck", ("schumer",)),
    ("bloomberg", r"\b(Michael|Mike)\s+Bloomberg\b", "Mini Mike", ("bloomberg",)),
    ("cheney", r"\bLiz\s+Cheney\b", "Lyin' Liz", ("cheney",)),
    ("christie", r"\bChris\s+Christie\b", "Sloppy Chris", ("christie",)),
    ("bernie", r"\bBernie\s+Sanders\b", "Crazy Bernie", ("sanders",)),
    ("jacksmith", r"\bJack\s+Smith\b", "Deranged Jack Smith", ("smith",)),
    ("bragg", r"\bAlvin\s+Bragg\b", "Fat Alvin", ("bragg",)),
    ("letitiajames", r"\bLetitia\s+James\b", "Peekaboo", ("letitia",)),
    ("kimjongun", r"\b(Kim Jong-un|Kim Jong Un)\b", "Little Rocket Man", ("kim jong",)),
    ("cnn", r"\bCNN\b", "Fake News CNN", ("cnn",)),
    ("nyt", r"\b(NYT|New\s+York\s+Times)\b", "Failing New York Times", ("nyt", "times")),
    ("washingtonpost", r"\b(Washington\s+Post|WaPo)\b", "Amazon Washington Post", ("washington", "wapo")),
    ("msnbc", r"\bMSNBC\b", "MSDNC", ("msnbc",)),
    # NBC but not NBC News
    ("nbc", r"\bNBC\b(?!\s+News)", "Fake News NBC", ("nbc",)),
    ("nbcnews", r"\bNBC\s+News\b", "Fake News NBC News", ("nbc",)),
    # ABC but not ABC News
    ("abc", r"\bABC\b(?!\s+News)", "Fake News ABC", ("abc",)),
    ("abcnews", r"\bABC\s+News\b", "Fake News ABC News", ("abc",)),
    ("cbs", r"\bCBS\b", "Fake News CBS", ("cbs",)),
    ("huffpo", r"\b(HuffPo|Huffington\s+Post)\b", "Liberal Huffington Post", ("huffpo", "huffington")),
    ("comcast", r"\bComcast\b", "Concast", ("comcast",)),
    ("forbes", r"\bForbes\b", "Failing Forbes Magazine", ("forbes",)),
    ("covid", r"\b(COVID[- ]?19|Covid|Coronavirus)\b", "China Virus", ("covid", "coronavirus")),
    ("covidalt", r"\b(SARS[- ]CoV[- ]?2|Wuhan\s+Virus)\b", "Kung Flu", ("sars", "wuhan")),
)

DEFAULT_RULES: tuple[PatternRule, ...] = tuple(
    PatternRule(name, pattern, replacement, hints=hints) for name, pattern, replacement, hints in NICKNAMES
)

_default_source: PatternSource | None = None


def default_source() -> PatternSource:
    """The shipped rule set (built once, then shared read-only)."""
    global _default_source  # noqa: PLW0603
    if _default_source is None:
        _default_source = PatternSource(DEFAULT_RULES)
    return _default_source
