import logging
import threading

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _format_request_period(leave):
    start = leave.start_date.isoformat()
    end = leave.end_date.isoformat()
    return start if start == end else f"{start} to {end}"


def _base_context(leave):
    return {
        "leave": leave,
        "employee_name": leave.user.full_name,
        "leave_type": leave.get_leave_type_display(),
        "period": _format_request_period(leave),
        "days": leave.days,
        "status": leave.get_status_display(),
    }


def _send(subject, plain_message, html_message, recipient_list):
    try:
        send_mail(
            subject=subject,
            message=plain_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipient_list,
            html_message=html_message,
            fail_silently=False,
        )
    except Exception:
        logger.exception("Failed to send '%s' email to %s", subject, ", ".join(recipient_list))
        return False
    logger.info("Sent '%s' email to %s", subject, ", ".join(recipient_list))
    return True


def _dispatch(subject, template_name, context, recipients):
    """
    Render the email now, deliver it on a background thread when
    TIMEOFF_NOTIFICATIONS_ASYNC is set. Never raises.
    """
    recipient_list = [email for email in recipients if email]
    if not recipient_list:
        logger.info("No recipients for '%s'. Skipping.", subject)
        return
    try:
        html_message = render_to_string(f"emails/{template_name}.html", context)
        plain_message = render_to_string(f"emails/{template_name}.txt", context)
    except Exception:
        logger.exception("Failed to render '%s' email", template_name)
        return

    if getattr(settings, "TIMEOFF_NOTIFICATIONS_ASYNC", True):
        threading.Thread(
            target=_send,
            args=(subject, plain_message, html_message, recipient_list),
            daemon=True,
        ).start()
    else:
        _send(subject, plain_message, html_message, recipient_list)


def notify_leave_submitted(leave):
    """Tell the employee's manager a request is waiting for a decision."""
    manager = leave.user.manager
    if not manager:
        logger.info("User %s has no manager assigned; submission email skipped.", leave.user_id)
        return
    context = _base_context(leave)
    context.update({"manager_name": manager.full_name, "reason": leave.reason})
    _dispatch(
        f"Leave request from {leave.user.full_name}",
        "leave_submitted",
        context,
        [manager.email],
    )


def notify_leave_decided(leave):
    context = _base_context(leave)
    context.update({
        "decided_by": leave.decided_by.full_name if leave.decided_by else "",
        "comment": leave.manager_comment,
        "approved": leave.status == "approved",
    })
    _dispatch(
        f"Your leave request was {leave.status}",
        "leave_decided",
        context,
        [leave.user.email],
    )


def notify_leave_cancelled(leave):
    manager = leave.user.manager
    if not manager:
        return
    context = _base_context(leave)
    context["manager_name"] = manager.full_name
    _dispatch(
        f"{leave.user.full_name} cancelled a leave request",
        "leave_cancelled",
        context,
        [manager.email],
    )
