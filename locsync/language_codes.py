"""
Language code metadata and utilities.

Standards:
- ISO 639-1: 2-letter language codes (en, zh, es)
- BCP 47: Language + Region/Script codes (pt-BR, zh-Hans)

Each known code carries its English name, its native name (empty when not
known yet; the worker translates those) and whether it is written
right-to-left.
"""

import re
from typing import Dict, Mapping, NamedTuple, Optional

from locsync.core.models import LanguageDescriptor


class LanguageInfo(NamedTuple):
    name: str
    native: str = ""
    rtl: bool = False


LANGUAGES: Dict[str, LanguageInfo] = {
    'af': LanguageInfo('Afrikaans', 'Afrikaans'),
    'am': LanguageInfo('Amharic', 'አማርኛ'),
    'ar': LanguageInfo('Arabic', 'العربية', True),
    'az': LanguageInfo('Azerbaijani', 'Azərbaycanca'),
    'be': LanguageInfo('Belarusian', 'Беларуская'),
    'bg': LanguageInfo('Bulgarian', 'Български'),
    'bn': LanguageInfo('Bengali', 'বাংলা'),
    'bo': LanguageInfo('Tibetan'),
    'ca': LanguageInfo('Catalan', 'Català'),
    'cs': LanguageInfo('Czech', 'Čeština'),
    'cy': LanguageInfo('Welsh', 'Cymraeg'),
    'da': LanguageInfo('Danish', 'Dansk'),
    'de': LanguageInfo('German', 'Deutsch'),
    'dv': LanguageInfo('Divehi', 'ދިވެހިބަސް', True),
    'el': LanguageInfo('Greek', 'Ελληνικά'),
    'en': LanguageInfo('English', 'English'),
    'eo': LanguageInfo('Esperanto', 'Esperanto'),
    'es': LanguageInfo('Spanish', 'Español'),
    'et': LanguageInfo('Estonian', 'Eesti'),
    'eu': LanguageInfo('Basque', 'Euskara'),
    'fa': LanguageInfo('Persian', 'فارسی', True),
    'fi': LanguageInfo('Finnish', 'Suomi'),
    'fr': LanguageInfo('French', 'Français'),
    'ga': LanguageInfo('Irish', 'Gaeilge'),
    'gl': LanguageInfo('Galician', 'Galego'),
    'gu': LanguageInfo('Gujarati', 'ગુજરાતી'),
    'ha': LanguageInfo('Hausa'),
    'he': LanguageInfo('Hebrew', 'עברית', True),
    'hi': LanguageInfo('Hindi', 'हिन्दी'),
    'hr': LanguageInfo('Croatian', 'Hrvatski'),
    'hu': LanguageInfo('Hungarian', 'Magyar'),
    'hy': LanguageInfo('Armenian', 'Հայերեն'),
    'id': LanguageInfo('Indonesian', 'Bahasa Indonesia'),
    'ig': LanguageInfo('Igbo'),
    'is': LanguageInfo('Icelandic', 'Íslenska'),
    'it': LanguageInfo('Italian', 'Italiano'),
    'ja': LanguageInfo('Japanese', '日本語'),
    'ka': LanguageInfo('Georgian', 'ქართული'),
    'kk': LanguageInfo('Kazakh', 'Қазақша'),
    'km': LanguageInfo('Khmer', 'ភាសាខ្មែរ'),
    'ko': LanguageInfo('Korean', '한국어'),
    'ku': LanguageInfo('Kurdish', '', True),
    'ky': LanguageInfo('Kyrgyz'),
    'lt': LanguageInfo('Lithuanian', 'Lietuvių'),
    'lv': LanguageInfo('Latvian', 'Latviešu'),
    'mk': LanguageInfo('Macedonian', 'Македонски'),
    'ml': LanguageInfo('Malayalam', 'മലയാളം'),
    'mn': LanguageInfo('Mongolian', 'Монгол'),
    'ms': LanguageInfo('Malay', 'Bahasa Melayu'),
    'mt': LanguageInfo('Maltese'),
    'nb': LanguageInfo('Norwegian Bokmål', 'Norsk bokmål'),
    'ne': LanguageInfo('Nepali', 'नेपाली'),
    'nl': LanguageInfo('Dutch', 'Nederlands'),
    'pa': LanguageInfo('Punjabi'),
    'pl': LanguageInfo('Polish', 'Polski'),
    'ps': LanguageInfo('Pashto', 'پښتو', True),
    'pt': LanguageInfo('Portuguese', 'Português'),
    'pt-BR': LanguageInfo('Portuguese (Brazil)', 'Português (Brasil)'),
    'ro': LanguageInfo('Romanian', 'Română'),
    'ru': LanguageInfo('Russian', 'Русский'),
    'sk': LanguageInfo('Slovak', 'Slovenčina'),
    'sl': LanguageInfo('Slovenian', 'Slovenščina'),
    'sq': LanguageInfo('Albanian', 'Shqip'),
    'sr': LanguageInfo('Serbian', 'Српски'),
    'sv': LanguageInfo('Swedish', 'Svenska'),
    'sw': LanguageInfo('Swahili', 'Kiswahili'),
    'ta': LanguageInfo('Tamil', 'தமிழ்'),
    'te': LanguageInfo('Telugu', 'తెలుగు'),
    'th': LanguageInfo('Thai', 'ไทย'),
    'tl': LanguageInfo('Tagalog', 'Tagalog'),
    'tr': LanguageInfo('Turkish', 'Türkçe'),
    'uk': LanguageInfo('Ukrainian', 'Українська'),
    'ur': LanguageInfo('Urdu', 'اردو', True),
    'uz': LanguageInfo('Uzbek'),
    'vi': LanguageInfo('Vietnamese', 'Tiếng Việt'),
    'yi': LanguageInfo('Yiddish', 'ייִדיש', True),
    'yo': LanguageInfo('Yoruba'),
    'zh': LanguageInfo('Chinese', '中文'),
    'zh-Hans': LanguageInfo('Chinese (Simplified)', '简体中文'),
    'zh-Hant': LanguageInfo('Chinese (Traditional)', '繁體中文'),
    'zu': LanguageInfo('Zulu', 'isiZulu'),
}

# ll, lll, ll-RR or ll-Xxxx; also safe to use as a file name
_CODE_PATTERN = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,4})?$")


def is_valid_language_code(code: str) -> bool:
    """
    Check if a string looks like a language code.

    Examples:
        >>> is_valid_language_code('en')
        True
        >>> is_valid_language_code('zh-Hans')
        True
        >>> is_valid_language_code('../etc')
        False
    """
    return bool(code) and bool(_CODE_PATTERN.match(code))


def is_known_language(code: str) -> bool:
    return code in LANGUAGES


def get_language_name(code: str) -> Optional[str]:
    """
    Get the English language name from code.

    Examples:
        >>> get_language_name('de')
        'German'
    """
    info = LANGUAGES.get(code)
    return info.name if info else None


def is_rtl(code: str) -> bool:
    info = LANGUAGES.get(code) or LANGUAGES.get(extract_base_language(code))
    return bool(info and info.rtl)


def extract_base_language(code: str) -> str:
    """
    Extract base language from code (remove region).

    Examples:
        >>> extract_base_language('pt-BR')
        'pt'
    """
    return code.split('-')[0]


def languages_match(code1: str, code2: str, strict: bool = False) -> bool:
    """
    Check if two language codes match.

    Examples:
        >>> languages_match('zh-Hans', 'zh-Hant')
        True
        >>> languages_match('zh-Hans', 'zh-Hant', strict=True)
        False
    """
    if strict:
        return code1 == code2
    return extract_base_language(code1).lower() == extract_base_language(code2).lower()


def describe(code: str, localized_names: Optional[Mapping[str, str]] = None) -> LanguageDescriptor:
    """
    Build the LanguageDescriptor for a code.

    Native names recorded in `localized_names` (translated in earlier cycles)
    fill the gaps of the built-in table.
    """
    localized_names = localized_names or {}
    info = LANGUAGES.get(code)
    name = info.name if info else code
    native = (info.native if info else "") or localized_names.get(code, "")
    return LanguageDescriptor(code=code, name=name, native_name=native, rtl=is_rtl(code))
