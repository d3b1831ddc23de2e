from io import BytesIO

from flask import Blueprint, Response, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.routes.api.v1.serializers import booking_dict, transaction_dict
from cropconnect.services import PaymentService
from cropconnect.services.parsing import parse_int

api_transaction_bp = Blueprint("api_transaction", __name__)


@api_transaction_bp.post("/pay-after-work")
@login_required
@role_required("farmer")
def pay_after_work():
    payload = request.get_json(silent=True) or {}
    transaction, booking = PaymentService.record_cash(
        parse_int(payload.get("booking_id"), "Booking id"),
        current_user,
        method=payload.get("payment_method") or "cash",
        notes=payload.get("notes"),
    )
    return (
        jsonify(
            {
                "success": True,
                "message": "Payment recorded.",
                "transaction": transaction_dict(transaction),
                "booking": booking_dict(booking),
            }
        ),
        201,
    )


@api_transaction_bp.get("")
@login_required
def transaction_history():
    rows = PaymentService.history(current_user.id, status=request.args.get("status"))
    return jsonify({"success": True, "transactions": [transaction_dict(row) for row in rows]})


@api_transaction_bp.get("/dashboard")
@login_required
def dashboard():
    summary = PaymentService.dashboard(current_user)
    return jsonify(
        {
            "success": True,
            "total_paid": float(summary["total_paid"]),
            "total_received": float(summary["total_received"]),
            "completed_count": summary["completed_count"],
            "pending_count": summary["pending_count"],
            "failed_count": summary["failed_count"],
            "awaiting_payment": [booking_dict(row) for row in summary["awaiting_payment"]],
        }
    )


@api_transaction_bp.get("/payment-options/<int:booking_id>")
@login_required
def payment_options(booking_id):
    options = PaymentService.payment_options(booking_id, current_user)
    options["amount"] = float(options["amount"])
    return jsonify(dict(options, success=True))


@api_transaction_bp.get("/<int:transaction_id>/receipt")
@login_required
def receipt(transaction_id):
    transaction = PaymentService.get_receipt(transaction_id, current_user)
    booking = transaction.booking
    if request.args.get("format") == "pdf":
        return _pdf_receipt_response(transaction, booking)
    return jsonify(
        {
            "success": True,
            "receipt": {
                "receipt_number": transaction.receipt_number,
                "paid_at": transaction.completed_at.isoformat(),
                "payer": transaction.payer.public_dict(),
                "payee": transaction.payee.public_dict(),
                "method": transaction.method,
                "amount": float(transaction.amount),
                "booking": booking_dict(booking),
            },
        }
    )


def _pdf_receipt_response(transaction, booking):
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas

    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    y = height - 60
    p.setFont("Helvetica-Bold", 22)
    p.drawString(50, y, "Crop Connect Receipt")

    y -= 36
    p.setFont("Helvetica", 12)
    lines = [
        f"Receipt: {transaction.receipt_number}",
        f"Date: {transaction.completed_at.strftime('%Y-%m-%d %H:%M')}",
        f"Service: {booking.service_type.title()} - {booking.work_type or '-'}",
        f"Booking: #{booking.id} on {booking.booking_date.strftime('%Y-%m-%d')}",
        f"Farmer: {transaction.payer.full_name}",
        f"Provider: {transaction.payee.full_name}",
        f"Method: {transaction.method.replace('_', ' ').title()}",
        f"Amount: INR {transaction.amount}",
    ]
    if transaction.gateway_payment_id:
        lines.append(f"Gateway payment id: {transaction.gateway_payment_id}")

    for line in lines:
        p.drawString(50, y, line)
        y -= 24

    p.showPage()
    p.save()
    buffer.seek(0)

    return Response(
        buffer.getvalue(),
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={transaction.receipt_number}.pdf"},
    )
