# propmarket/email_system/templates.py
"""
Notification mail templates (subject, HTML body) rendered with Jinja2.
"""
import logging
from typing import Any, Dict, Tuple

import jinja2

logger = logging.getLogger(__name__)

TEMPLATES: Dict[str, Tuple[str, str]] = {
    "booking_submitted": (
        "New booking request #{{ booking_id }} awaiting approval",
        """
<h2>New manual booking submitted</h2>
<p><b>User:</b> {{ user }}</p>
<p><b>Property:</b> {{ property }}</p>
<p><b>Payment reference:</b> {{ payment_ref }}</p>
{% if proof_url %}<p><b>Payment proof:</b> <a href="{{ proof_url }}">{{ proof_url }}</a></p>{% endif %}
<p><b>Window:</b> {{ start }} - {{ end }}</p>
<p>Review it in the admin dashboard.</p>
""",
    ),
    "commission_earned": (
        "You earned a level {{ level }} commission",
        """
<h2>Commission earned</h2>
<p>Hello {{ dealer_name }},</p>
<p>A sale on <b>{{ property }}</b> earned you <b>{{ amount }}</b> (level {{ level }}).</p>
""",
    ),
    "dealer_application": (
        "New dealer application from {{ dealer_name }}",
        """
<h2>New dealer registration</h2>
<p>{{ dealer_name }} ({{ dealer_email }}) has applied to become a dealer.</p>
{% if parent_code %}<p>Referred by: {{ parent_code }}</p>{% endif %}
""",
    ),
}

_env = jinja2.Environment(
    loader=jinja2.BaseLoader(),
    autoescape=True,
    undefined=jinja2.make_logging_undefined(
        logger=logger,
        base=jinja2.Undefined
    )
)


def render(template_key: str, context: Dict[str, Any]) -> Tuple[str, str]:
    """
    Render subject and HTML body for a template key.

    Raises:
        KeyError: Unknown template key
    """
    subject_src, body_src = TEMPLATES[template_key]
    subject = _env.from_string(subject_src).render(**context)
    body = _env.from_string(body_src).render(**context)
    return subject.strip(), body.strip()
