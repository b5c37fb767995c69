class AppError(Exception):
    default_code = "APP_ERROR"
    default_message = "Application error."

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        detail: str | None = None,
        cause: Exception | None = None,
    ):
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.detail = detail
        self.cause = cause
        super().__init__(self.message)


class ChartRenderError(AppError):
    default_code = "CHART_RENDER_ERROR"
    default_message = "Failed to render the yearly chart."


class ExportError(AppError):
    default_code = "EXPORT_ERROR"
    default_message = "Failed to build the export document."


class PdfExportUnavailableError(ExportError):
    default_code = "PDF_EXPORT_UNAVAILABLE"
    default_message = "PDF export is unavailable (PyMuPDF is not installed)."
