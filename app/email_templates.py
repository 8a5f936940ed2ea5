"""
HTML email shell for review request messages.

Tenant templates are plain text with ``{{variable}}`` placeholders; once
rendered they are escaped, split into paragraphs and placed in a card with a
call-to-action button pointing at the review link.

All styles are inlined for maximum email-client compatibility. No external
resources (fonts, images, scripts) are referenced.
"""

from html import escape as _esc


# ---------------------------------------------------------------------------
# Shared layout helpers
# ---------------------------------------------------------------------------

def _header(company_name):
    """Company branded header block."""
    return (
        '<div style="text-align:center;margin-bottom:30px;">'
        '<h1 style="color:#2563EB;font-size:26px;margin:0;font-family:\'DM Sans\',Arial,sans-serif;font-weight:700;">'
        + _esc(str(company_name or ''))
        + '</h1></div>'
    )


def _footer(unsubscribe_url=None):
    """Footer with an optional unsubscribe link."""
    inner = '<p style="margin:0 0 4px;">You are receiving this because you recently had a service visit.</p>'
    if unsubscribe_url:
        inner += (
            '<p style="margin:0;"><a href="{url}" style="color:#9ca3af;">'
            'Stop receiving review requests</a></p>'
        ).format(url=_esc(str(unsubscribe_url)))
    return (
        '<div style="text-align:center;margin-top:30px;padding-top:20px;border-top:1px solid #e5e7eb;'
        'color:#9ca3af;font-size:12px;line-height:1.6;">'
        + inner
        + '</div>'
    )


def _wrap(company_name, body_html, unsubscribe_url=None):
    """Wrap inner content in the common email shell (background, card, header, footer)."""
    return (
        '<!DOCTYPE html>'
        '<html lang="en"><head><meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width,initial-scale=1.0">'
        '<title>' + _esc(str(company_name or 'Review request')) + '</title></head>'
        '<body style="margin:0;padding:0;background-color:#f3f4f6;-webkit-text-size-adjust:100%;">'
        '<div style="font-family:\'DM Sans\',Arial,sans-serif;max-width:600px;margin:0 auto;background:#fafaf8;padding:40px 20px;">'
        + _header(company_name)
        + '<div style="background:#ffffff;border-radius:12px;padding:30px;box-shadow:0 1px 3px rgba(0,0,0,0.1);">'
        + body_html
        + '</div>'
        + _footer(unsubscribe_url)
        + '</div></body></html>'
    )


def _paragraphs(text):
    """Plain text with blank-line separated paragraphs -> <p> blocks."""
    blocks = [block.strip() for block in (text or '').split('\n\n') if block.strip()]
    return ''.join(
        '<p style="color:#111827;font-size:15px;line-height:1.6;margin:0 0 16px;">'
        + '<br>'.join(_esc(line) for line in block.split('\n'))
        + '</p>'
        for block in blocks
    )


def _button(url, label):
    """Call-to-action button."""
    return (
        '<div style="text-align:center;margin:28px 0 12px;">'
        '<a href="{url}" style="display:inline-block;background:#2563EB;color:#ffffff;'
        'text-decoration:none;padding:14px 36px;border-radius:8px;font-size:16px;'
        'font-weight:600;line-height:1;">'.format(url=_esc(str(url)))
        + _esc(str(label))
        + '</a></div>'
    )


def _service_details(technician_name, service_type):
    rows = [(label, value) for label, value in (('Technician', technician_name), ('Service', service_type)) if value]
    if not rows:
        return ''
    inner = ''.join(
        '<tr><td style="padding:6px 0;color:#6b7280;font-size:14px;">{}</td>'
        '<td style="padding:6px 0;color:#111827;font-size:14px;font-weight:600;text-align:right;">{}</td></tr>'
        .format(_esc(str(label)), _esc(str(value)))
        for label, value in rows
    )
    return (
        '<div style="background:#EFF6FF;border:1px solid #BFDBFE;border-radius:8px;padding:16px;margin:20px 0;">'
        '<table style="width:100%;border-collapse:collapse;">' + inner + '</table></div>'
    )


# ---------------------------------------------------------------------------
# Review request
# ---------------------------------------------------------------------------

def review_request_html(company_name, body_text, review_link=None, technician_name=None,
                        service_type=None, include_service_details=False, unsubscribe_url=None):
    """Full HTML email for one review request stage."""
    body = _paragraphs(body_text)
    if include_service_details:
        body += _service_details(technician_name, service_type)
    if review_link:
        body += _button(review_link, 'Leave a Review')
    return _wrap(company_name, body, unsubscribe_url=unsubscribe_url)
