from io import BytesIO

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from pos_app.decorators import require_auth, require_capability
from pos_app.errors import POSError
from pos_app.permissions import Capability
from pos_app.services import report_export, reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def sales_report():
    """
    Query params:
    - start, end: YYYY-MM-DD or ISO datetimes (required, inclusive)
    - download=true: XLSX attachment
    - format=csv: CSV attachment
    """
    start = request.args.get("start")
    end = request.args.get("end")
    download = request.args.get("download", "false").lower() == "true"
    fmt = (request.args.get("format") or "").lower()

    try:
        report = reporting_service.generate_report(start, end)
        if not download and fmt != "csv":
            return jsonify(report.to_dict()), 200

        transactions = reporting_service.detailed_transactions(report.start, report.end)
        if fmt == "csv":
            body = report_export.render_csv(report, transactions)
            filename = report_export.export_filename(report, "csv")
            return Response(
                body,
                mimetype=report_export.CSV_MIMETYPE,
                headers={"Content-Disposition": f"attachment; filename={filename}"},
            )

        return send_file(
            BytesIO(report_export.render_xlsx(report, transactions)),
            mimetype=report_export.XLSX_MIMETYPE,
            as_attachment=True,
            download_name=report_export.export_filename(report, "xlsx"),
        )
    except POSError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to generate sales report")
        return jsonify({"error": "Failed to generate sales report"}), 500
