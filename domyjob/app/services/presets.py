from typing import Dict, Any

# IMAP/SMTP defaults offered by the settings form
EMAIL_PROVIDER_PRESETS: Dict[str, Dict[str, Any]] = {
    'gmail': {
        'host': 'imap.gmail.com', 'port': 993, 'tls': True,
        'smtpHost': 'smtp.gmail.com', 'smtpPort': 465, 'smtpSecure': True,
    },
    'outlook': {
        'host': 'outlook.office365.com', 'port': 993, 'tls': True,
        'smtpHost': 'smtp.office365.com', 'smtpPort': 587, 'smtpSecure': False,
    },
    'yahoo': {
        'host': 'imap.mail.yahoo.com', 'port': 993, 'tls': True,
        'smtpHost': 'smtp.mail.yahoo.com', 'smtpPort': 465, 'smtpSecure': True,
    },
    'icloud': {
        'host': 'imap.mail.me.com', 'port': 993, 'tls': True,
        'smtpHost': 'smtp.mail.me.com', 'smtpPort': 587, 'smtpSecure': False,
    },
    'custom': {
        'host': '', 'port': 993, 'tls': True,
        'smtpHost': '', 'smtpPort': 587, 'smtpSecure': False,
    },
}


def apply_preset(provider: str, credentials: Dict[str, Any]) -> Dict[str, Any]:
    """Fill SMTP fields the client left out from the provider preset."""
    preset = EMAIL_PROVIDER_PRESETS.get((provider or '').lower())
    if not preset:
        return dict(credentials)
    merged = dict(credentials)
    for key in ('smtpHost', 'smtpPort', 'smtpSecure', 'tls'):
        if merged.get(key) in (None, ''):
            merged[key] = preset[key]
    return merged
