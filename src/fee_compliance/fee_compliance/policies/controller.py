from __future__ import annotations

import logging
from typing import Any, Callable

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..core.enums import Term
from ..core.exceptions import NotFoundError, ValidationError
from ..container import Container
from .model import ChannelToggles, ReminderChannelSettings, TermPolicy

logger = logging.getLogger(__name__)


def policy_to_dict(policy: TermPolicy) -> dict:
    return {
        "course_id": policy.key.course_id,
        "academic_year": policy.key.academic_year,
        "year_of_study": policy.key.year_of_study,
        "is_active": policy.is_active,
        "term_due_dates": {
            t.key: {
                "days_from_anchor": policy.term(t).days_from_anchor,
                "anchor_semester": policy.term(t).anchor_semester.value,
                "late_fee": str(policy.term(t).late_fee),
                "description": policy.term(t).description,
            }
            for t in Term
        },
        "reminder_days": {
            t.key: {
                "pre_reminders": list(policy.reminders_for(t).pre_reminder_days),
                "post_reminders": list(policy.reminders_for(t).post_reminder_days),
            }
            for t in Term
        },
    }


def _toggles_to_dict(toggles: ChannelToggles) -> dict:
    return {"push": toggles.push, "email": toggles.email, "sms": toggles.sms}


def channel_settings_to_dict(settings: ReminderChannelSettings) -> dict:
    return {"pre_due": _toggles_to_dict(settings.pre_due), "post_due": _toggles_to_dict(settings.post_due)}


def register(app: Flask, container: Container) -> None:
    service = container.policy_service

    def _respond(action: Callable[[], Any], *, failure: str):
        try:
            return jsonify({"success": True, "data": action()}), 200
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"success": False, "message": str(e)}), 404
        except Exception:
            logger.exception(failure)
            return jsonify({"success": False, "message": failure}), 500

    @app.route("/api/reminder-policies", methods=["GET"], endpoint="reminder_policy_list")
    def list_policies():
        return _respond(lambda: [policy_to_dict(p) for p in service.list_policies()], failure="Failed to list policies")

    @app.route("/api/reminder-policies/channels", methods=["GET"], endpoint="reminder_channels_get")
    def get_channels():
        return _respond(lambda: channel_settings_to_dict(service.get_channel_settings()), failure="Failed to load channel settings")

    @app.route("/api/reminder-policies/channels", methods=["PUT"], endpoint="reminder_channels_update")
    def update_channels():
        body = request.get_json(silent=True) or {}
        return _respond(
            lambda: channel_settings_to_dict(
                service.update_channel_settings(pre_due=body.get("pre_due"), post_due=body.get("post_due"))
            ),
            failure="Failed to update channel settings",
        )

    @app.route(
        "/api/reminder-policies/<course_id>/<academic_year>/<year_of_study>",
        methods=["GET"],
        endpoint="reminder_policy_get",
    )
    def get_policy(course_id: str, academic_year: str, year_of_study: str):
        return _respond(
            lambda: policy_to_dict(service.get_policy(service.build_key(course_id, academic_year, year_of_study))),
            failure="Failed to load policy",
        )

    @app.route(
        "/api/reminder-policies/<course_id>/<academic_year>/<year_of_study>",
        methods=["PUT"],
        endpoint="reminder_policy_save",
    )
    def save_policy(course_id: str, academic_year: str, year_of_study: str):
        body = request.get_json(silent=True) or {}
        return _respond(
            lambda: policy_to_dict(
                service.save_policy(
                    course_id=course_id,
                    academic_year=academic_year,
                    year_of_study=year_of_study,
                    term_due_dates=body.get("term_due_dates"),
                    reminder_days=body.get("reminder_days"),
                )
            ),
            failure="Failed to save policy",
        )

    @app.route(
        "/api/reminder-policies/<course_id>/<academic_year>/<year_of_study>",
        methods=["DELETE"],
        endpoint="reminder_policy_delete",
    )
    def delete_policy(course_id: str, academic_year: str, year_of_study: str):
        def action():
            service.delete_policy(service.build_key(course_id, academic_year, year_of_study))
            return {"deleted": True}

        return _respond(action, failure="Failed to delete policy")

    @app.route(
        "/api/reminder-policies/<course_id>/<academic_year>/<year_of_study>/preview",
        methods=["GET"],
        endpoint="reminder_policy_preview",
    )
    def preview(course_id: str, academic_year: str, year_of_study: str):
        def action():
            try:
                semester_start = parse_iso_date(request.args.get("semester_start") or "")
            except ValueError:
                raise ValidationError("semester_start must be YYYY-MM-DD")
            key = service.build_key(course_id, academic_year, year_of_study)
            due = service.preview_due_dates(key, semester_start)
            return {t.key: due[t.index].isoformat() for t in Term}

        return _respond(action, failure="Failed to preview due dates")
