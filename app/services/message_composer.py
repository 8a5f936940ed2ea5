"""
Review request message composition.

Templates use ``{{variable}}`` placeholders. Only placeholders with a value
in the supplied variables are replaced; anything else is left as written so
a typo in a tenant template shows up in the message instead of failing the
send.
"""
import re
from collections import namedtuple

from app.models.review_request import STAGE_INITIAL, STAGE_FIRST, STAGE_SECOND, STAGE_FINAL

ComposedMessage = namedtuple('ComposedMessage', ['subject', 'body'])

_PLACEHOLDER = re.compile(r'\{\{\s*(\w+)\s*\}\}')

# Stages whose messages talk about the visit itself
SERVICE_DETAIL_STAGES = (STAGE_INITIAL, STAGE_SECOND)


# ---------------------------------------------------------------------------
# Default templates
# ---------------------------------------------------------------------------
DEFAULT_EMAIL_TEMPLATES = {
    STAGE_INITIAL: (
        "Dear {{customerName}},\n\n"
        "Thank you for choosing {{companyName}} for your recent {{serviceType}} service. "
        "We hope that {{technicianName}} provided an excellent experience.\n\n"
        "Would you take a moment to share your feedback with a quick review? It only takes "
        "30 seconds and helps us continue to provide great service to you and others in the "
        "{{location}} area.\n\n"
        "Click here to leave a review: {{reviewLink}}\n\n"
        "Thank you for your time!\n\n"
        "Best regards,\n"
        "The {{companyName}} Team"
    ),
    STAGE_FIRST: (
        "Hi {{customerName}},\n\n"
        "We just wanted to follow up about your recent service with {{technicianName}}. "
        "Your opinion is valuable to us, and we'd appreciate if you could take a moment to "
        "share your experience.\n\n"
        "Leave a quick review here: {{reviewLink}}\n\n"
        "Thank you!\n\n"
        "{{companyName}}"
    ),
    STAGE_SECOND: (
        "Hello {{customerName}},\n\n"
        "We noticed you haven't had a chance to leave us a review yet. We'd still love to hear "
        "about your experience with {{technicianName}} during your recent {{serviceType}} service.\n\n"
        "Your feedback helps us improve and assists others looking for quality service in the "
        "{{location}} area.\n\n"
        "Share your thoughts here: {{reviewLink}}\n\n"
        "Thanks again for choosing {{companyName}}."
    ),
    STAGE_FINAL: (
        "Hi {{customerName}},\n\n"
        "This is our final reminder about leaving a review for your recent service. We value "
        "your feedback and would appreciate hearing about your experience with us.\n\n"
        "If you have a moment, please click here to share your thoughts: {{reviewLink}}\n\n"
        "Thank you for being a valued customer.\n\n"
        "The {{companyName}} Team"
    ),
}

DEFAULT_SUBJECT_TEMPLATES = {
    STAGE_INITIAL: "How was your service with {{companyName}}?",
    STAGE_FIRST: "Your feedback matters to {{companyName}}",
    STAGE_SECOND: "A quick reminder about your {{companyName}} service",
    STAGE_FINAL: "Last chance to share your {{companyName}} experience",
}

# SMS templates (shorter than email)
DEFAULT_SMS_TEMPLATES = {
    STAGE_INITIAL: (
        "{{companyName}}: Thanks for choosing us for your {{serviceType}} service! "
        "Please share your experience with a quick review: {{reviewLink}}"
    ),
    STAGE_FIRST: (
        "{{companyName}} here! We'd love to hear about your recent service. "
        "Please share your feedback: {{reviewLink}}"
    ),
    STAGE_SECOND: (
        "{{companyName}}: Your feedback matters! Please take a moment to review your "
        "recent service: {{reviewLink}}"
    ),
    STAGE_FINAL: (
        "{{companyName}}: Final reminder to share your thoughts on your recent service "
        "experience: {{reviewLink}}"
    ),
}


def format_message(template, variables):
    """Replace every ``{{key}}`` whose key is in ``variables``.

        format_message("Hi {{customerName}}", {"customerName": "Ann"}) -> "Hi Ann"
        format_message("Hi {{missing}}", {})                           -> "Hi {{missing}}"
    """
    if not template:
        return ''

    def _replace(match):
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


def strip_html(html):
    """Plain-text fallback for an HTML body"""
    text = re.sub(r'<[^>]*>?', '', html or '')
    text = text.replace('&nbsp;', ' ')
    return re.sub(r'\s+', ' ', text).strip()


def build_variables(stage, customer_name, company_name, technician_name,
                    review_link=None, service_type=None, location=None):
    """Variables available to a stage's templates.

    customerName, companyName and technicianName are always present;
    serviceType and location only for stages that describe the visit.
    """
    variables = {
        'customerName': customer_name or 'there',
        'companyName': company_name or '',
        'technicianName': technician_name or 'our technician',
    }
    if review_link:
        variables['reviewLink'] = review_link
    if stage in SERVICE_DETAIL_STAGES:
        variables['serviceType'] = service_type or 'service'
        variables['location'] = location or 'your area'
    return variables


class MessageComposer:
    """Renders the subject/body pair for a stage from a tenant's settings"""

    def template_for(self, stage, settings):
        message = getattr(settings, _message_attr(stage))
        return message or DEFAULT_EMAIL_TEMPLATES[stage]

    def subject_for(self, stage, settings):
        subject = getattr(settings, _subject_attr(stage))
        return subject or DEFAULT_SUBJECT_TEMPLATES[stage]

    def compose(self, stage, settings, variables):
        subject = format_message(self.subject_for(stage, settings), variables)
        body = format_message(self.template_for(stage, settings), variables)
        return ComposedMessage(subject=subject, body=body)

    def compose_sms(self, stage, variables):
        return format_message(DEFAULT_SMS_TEMPLATES[stage], variables)


def _message_attr(stage):
    return 'initial_message' if stage == STAGE_INITIAL else f'{stage}_follow_up_message'


def _subject_attr(stage):
    return 'initial_subject' if stage == STAGE_INITIAL else f'{stage}_follow_up_subject'
