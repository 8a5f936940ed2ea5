"""
Message template rendering tests
"""
from app.models.review_request import STAGE_INITIAL, STAGE_FIRST, STAGE_SECOND, STAGE_FINAL
from app.services.message_composer import (
    DEFAULT_SMS_TEMPLATES,
    MessageComposer,
    build_variables,
    format_message,
    strip_html,
)
from tests.conftest import make_settings


class TestFormatMessage:

    def test_replaces_known_placeholder(self):
        assert format_message("Hi {{customerName}}", {"customerName": "Ann"}) == "Hi Ann"

    def test_unknown_placeholder_left_verbatim(self):
        assert format_message("Hi {{missing}}", {}) == "Hi {{missing}}"

    def test_replaces_every_occurrence(self):
        template = "{{companyName}} says thanks. Love, {{companyName}}"
        assert format_message(template, {"companyName": "Acme"}) == "Acme says thanks. Love, Acme"

    def test_whitespace_inside_braces(self):
        assert format_message("Hi {{ customerName }}", {"customerName": "Ann"}) == "Hi Ann"

    def test_none_value_leaves_placeholder(self):
        assert format_message("Hi {{customerName}}", {"customerName": None}) == "Hi {{customerName}}"

    def test_empty_template(self):
        assert format_message('', {"customerName": "Ann"}) == ''
        assert format_message(None, {}) == ''

    def test_text_without_placeholders_unchanged(self):
        assert format_message("Thanks!", {"customerName": "Ann"}) == "Thanks!"


class TestBuildVariables:

    def test_core_variables_always_present(self):
        variables = build_variables(STAGE_FIRST, 'Ann', 'Acme', 'Dana', review_link='https://x/review/t')
        assert variables == {
            'customerName': 'Ann',
            'companyName': 'Acme',
            'technicianName': 'Dana',
            'reviewLink': 'https://x/review/t',
        }

    def test_service_details_on_initial_and_second_only(self):
        for stage in (STAGE_INITIAL, STAGE_SECOND):
            variables = build_variables(stage, 'Ann', 'Acme', 'Dana', service_type='Drain Cleaning',
                                        location='Tampa')
            assert variables['serviceType'] == 'Drain Cleaning'
            assert variables['location'] == 'Tampa'

        for stage in (STAGE_FIRST, STAGE_FINAL):
            variables = build_variables(stage, 'Ann', 'Acme', 'Dana', service_type='Drain Cleaning',
                                        location='Tampa')
            assert 'serviceType' not in variables
            assert 'location' not in variables

    def test_fallback_values(self):
        variables = build_variables(STAGE_INITIAL, None, 'Acme', None)
        assert variables['customerName'] == 'there'
        assert variables['technicianName'] == 'our technician'
        assert variables['serviceType'] == 'service'
        assert variables['location'] == 'your area'
        assert 'reviewLink' not in variables


class TestMessageComposer:

    def test_compose_uses_tenant_templates(self):
        settings = make_settings(
            first_follow_up_subject='Still thinking about {{companyName}}?',
            first_follow_up_message='Hey {{customerName}}, review us: {{reviewLink}}',
        )
        variables = build_variables(STAGE_FIRST, 'Ann', 'Acme', 'Dana', review_link='https://x/review/t')

        message = MessageComposer().compose(STAGE_FIRST, settings, variables)

        assert message.subject == 'Still thinking about Acme?'
        assert message.body == 'Hey Ann, review us: https://x/review/t'

    def test_default_initial_message_renders_fully(self):
        settings = make_settings()
        variables = build_variables(STAGE_INITIAL, 'Ann', 'Acme', 'Dana', review_link='https://x/review/t',
                                    service_type='Drain Cleaning', location='Tampa')

        message = MessageComposer().compose(STAGE_INITIAL, settings, variables)

        assert message.subject == 'How was your service with Acme?'
        assert 'Dear Ann' in message.body
        assert 'Drain Cleaning' in message.body
        assert 'Tampa area' in message.body
        assert 'https://x/review/t' in message.body
        assert '{{' not in message.body

    def test_empty_final_template_falls_back_to_default(self):
        settings = make_settings(final_follow_up_message=None, final_follow_up_subject=None)
        variables = build_variables(STAGE_FINAL, 'Ann', 'Acme', 'Dana', review_link='https://x/review/t')

        message = MessageComposer().compose(STAGE_FINAL, settings, variables)

        assert message.subject == 'Last chance to share your Acme experience'
        assert 'final reminder' in message.body

    def test_compose_sms(self):
        variables = build_variables(STAGE_INITIAL, 'Ann', 'Acme', 'Dana', review_link='https://x/review/t',
                                    service_type='Drain Cleaning')

        body = MessageComposer().compose_sms(STAGE_INITIAL, variables)

        assert body.startswith('Acme: Thanks for choosing us for your Drain Cleaning service!')
        assert body.endswith('https://x/review/t')

    def test_every_stage_has_an_sms_template(self):
        assert set(DEFAULT_SMS_TEMPLATES) == {STAGE_INITIAL, STAGE_FIRST, STAGE_SECOND, STAGE_FINAL}


class TestStripHtml:

    def test_removes_tags_and_collapses_whitespace(self):
        assert strip_html('<p>Hello&nbsp;<b>Ann</b></p>\n\n<p>Bye</p>') == 'Hello Ann Bye'

    def test_none(self):
        assert strip_html(None) == ''
