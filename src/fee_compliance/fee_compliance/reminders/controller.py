from __future__ import annotations

import logging
from typing import Any, Callable

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..core.enums import Term
from ..core.exceptions import NotFoundError, ValidationError
from ..container import Container
from .model import ReminderRecord

logger = logging.getLogger(__name__)


def record_to_dict(record: ReminderRecord) -> dict:
    terms = {}
    for term in Term:
        state = record.state(term)
        terms[term.key] = {
            "due_date": record.due_date(term).isoformat(),
            "fee_amount": str(record.fee_amount(term)),
            "fee_status": record.status(term).value,
            "visible": state.visible,
            "issued_at": state.issued_at.isoformat() if state.issued_at else None,
            "pre_reminders_sent": sorted(state.pre_sent),
            "post_reminders_sent": sorted(state.post_sent),
            "late_fee_applied": record.late_fee_applied[term.index],
            "late_fee_accrued": str(record.term_late_fee_accrued[term.index]),
        }
    return {
        "reminder_id": record.reminder_id,
        "student_id": record.student_id,
        "academic_year": record.academic_year,
        "registration_date": record.registration_date.isoformat(),
        "current_level": record.current_level,
        "due_date_source": record.due_date_source.value,
        "is_active": record.is_active,
        "total_fee": str(record.total_fee()),
        "pending_amount": str(record.pending_amount()),
        "last_updated_at": record.last_updated_at.isoformat() if record.last_updated_at else None,
        "terms": terms,
    }


def register(app: Flask, container: Container) -> None:
    def _respond(action: Callable[[], Any], *, status: int = 200, failure: str):
        try:
            return jsonify({"success": True, "data": action()}), status
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"success": False, "message": str(e)}), 404
        except Exception:
            logger.exception(failure)
            return jsonify({"success": False, "message": failure}), 500

    def _body() -> dict:
        return request.get_json(silent=True) or {}

    @app.route("/api/fee-reminders/students/<int:student_id>/due-dates", methods=["GET"], endpoint="fee_reminder_due_dates")
    def due_dates(student_id: int):
        academic_year = request.args.get("academic_year") or None

        def action():
            resolved = container.reminder_service.resolve_due_dates(student_id, academic_year)
            return {
                "source": resolved.source.value,
                "due_dates": {t.key: resolved.due_date(t).isoformat() for t in Term},
                "late_fees": {t.key: str(resolved.late_fee(t)) for t in Term},
            }

        return _respond(action, failure="Failed to resolve due dates")

    @app.route("/api/fee-reminders/students/<int:student_id>", methods=["GET"], endpoint="fee_reminder_detail")
    def detail(student_id: int):
        academic_year = request.args.get("academic_year") or None
        return _respond(
            lambda: record_to_dict(container.reminder_service.get_record(student_id, academic_year)),
            failure="Failed to load fee reminder",
        )

    @app.route("/api/fee-reminders/students/<int:student_id>", methods=["POST"], endpoint="fee_reminder_create")
    def create(student_id: int):
        def action():
            body = _body()
            registration_date = body.get("registration_date")
            try:
                parsed = parse_iso_date(registration_date) if registration_date else None
            except ValueError:
                raise ValidationError("registration_date must be YYYY-MM-DD")
            record = container.reminder_service.create_for_student(
                student_id,
                registration_date=parsed,
                academic_year=body.get("academic_year") or None,
            )
            return record_to_dict(record)

        return _respond(action, status=201, failure="Failed to create fee reminder")

    @app.route("/api/fee-reminders/students/<int:student_id>/deactivate", methods=["POST"], endpoint="fee_reminder_deactivate")
    def deactivate(student_id: int):
        academic_year = _body().get("academic_year") or None
        return _respond(
            lambda: record_to_dict(container.reminder_service.deactivate(student_id, academic_year)),
            failure="Failed to deactivate fee reminder",
        )

    @app.route("/api/fee-reminders/students/<int:student_id>/reconcile", methods=["POST"], endpoint="fee_reminder_reconcile")
    def reconcile(student_id: int):
        academic_year = _body().get("academic_year") or None
        return _respond(
            lambda: record_to_dict(container.reconciler.reconcile_payments(student_id, academic_year)),
            failure="Failed to sync fee status with payments",
        )

    @app.route("/api/fee-reminders/backfill", methods=["POST"], endpoint="fee_reminder_backfill")
    def backfill():
        academic_year = _body().get("academic_year") or None
        return _respond(
            lambda: container.reminder_service.create_for_all_students(academic_year).as_dict(),
            failure="Failed to create fee reminders",
        )

    @app.route("/api/fee-reminders/stats", methods=["GET"], endpoint="fee_reminder_stats")
    def stats():
        academic_year = request.args.get("academic_year") or None
        return _respond(
            lambda: container.reminder_service.stats(academic_year).as_dict(),
            failure="Failed to load fee reminder statistics",
        )

    @app.route("/api/fee-reminders/cycles/reminders", methods=["POST"], endpoint="fee_reminder_run_cycle")
    def run_reminder_cycle():
        return _respond(lambda: container.reminder_cycle.run().as_dict(), failure="Reminder cycle failed")

    @app.route("/api/fee-reminders/cycles/late-fees", methods=["POST"], endpoint="fee_reminder_run_late_fees")
    def run_late_fee_cycle():
        return _respond(lambda: container.late_fee_processor.run().as_dict(), failure="Late fee cycle failed")

    @app.route("/api/fee-reminders/cycles/reconcile", methods=["POST"], endpoint="fee_reminder_run_reconcile")
    def run_reconcile():
        return _respond(lambda: container.reconciler.reconcile_all().as_dict(), failure="Payment reconciliation failed")

    @app.route("/api/fee-reminders/recalculate", methods=["POST"], endpoint="fee_reminder_recalculate")
    def recalculate():
        return _respond(
            lambda: container.reminder_service.recalculate_all_due_dates().as_dict(),
            failure="Due date recalculation failed",
        )

    @app.route("/api/fee-reminders/students/<int:student_id>/notifications", methods=["GET"], endpoint="fee_reminder_notifications")
    def notifications(student_id: int):
        def action():
            items = container.notifications_repo.list_for_recipient(student_id, limit=request.args.get("limit", 50, type=int))
            return [
                {
                    "title": n.title,
                    "message": n.message,
                    "priority": n.priority,
                    "type": n.type,
                    "is_read": n.is_read,
                    "created_at": n.created_at.isoformat() if n.created_at else None,
                }
                for n in items
            ]

        return _respond(action, failure="Failed to load notifications")
