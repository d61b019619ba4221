"""FastAPI web application for depbump."""

import logging
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, ValidationError

from core.cache import ResolutionCache
from core.check import DependencyChecker
from core.config import Settings
from core.constraints import bump_token
from core.detect import get_dialect, identify
from core.errors import DepBumpError, ManifestParseError
from core.models import CheckResult
from core.registry import RegistryVersionSource
from core.rewrite import apply_updates, select_for_update

logger = logging.getLogger(__name__)

app = FastAPI(
    title="depbump",
    description="Check package.json and pubspec.yaml dependencies for newer versions",
    version="0.1.0",
)

MANIFEST_FILENAMES = {"npm": "package.json", "pub": "pubspec.yaml"}


class CheckRequest(BaseModel):
    """Request model for checking a manifest."""
    content: str
    ecosystem: Optional[str] = None
    semver: bool = False
    include_peer: bool = False


class OutdatedItem(BaseModel):
    name: str
    section: str
    line: int
    current_version: str
    new_version: str
    change: str


class SkippedItem(BaseModel):
    name: str
    current_version: str
    latest_version: str
    reason: str


class ErrorItem(BaseModel):
    name: str
    error: str


class CheckResponse(BaseModel):
    """Response model for a manifest check."""
    original_content: str
    updated_content: str
    outdated: list[OutdatedItem]
    semver_skipped: list[SkippedItem]
    errors: list[ErrorItem]
    has_changes: bool
    ecosystem: str


@app.get("/", response_class=HTMLResponse)
async def home():
    """Serve the main application page."""
    return get_index_html()


@app.get("/favicon.ico")
async def favicon():
    """Return a simple favicon to prevent 404 errors."""
    # Simple 1x1 transparent PNG
    favicon_data = (
        b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01'
        b'\x08\x02\x00\x00\x00\x90wS\xde\x00\x00\x00\tpHYs\x00\x00\x0b\x13\x00\x00'
        b'\x0b\x13\x01\x00\x9a\x9c\x18\x00\x00\x00\x12IDAT\x08\x1dc\xf8\x00\x00'
        b'\x00\x01\x00\x01u\x02\x81\xa3\x00\x00\x00\x00IEND\xaeB`\x82'
    )
    return Response(content=favicon_data, media_type="image/png")


@app.post("/api/check", response_model=CheckResponse)
async def check_dependencies(request: CheckRequest):
    """Check manifest content and preview the updated file."""
    try:
        content = request.content
        if not content.strip():
            raise HTTPException(status_code=400, detail="No content provided")

        ecosystem = request.ecosystem or identify(content)
        try:
            dialect = get_dialect(ecosystem)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported ecosystem: {ecosystem}. Supported: npm, pub."
            )

        try:
            manifest = dialect.parse(content)
        except ManifestParseError as e:
            raise HTTPException(status_code=400, detail=str(e))

        if not manifest.dependencies:
            raise HTTPException(status_code=400, detail="No dependencies found to check")

        # Memory-only cache: the server never touches the user's cache file
        settings = Settings()
        checker = DependencyChecker(
            RegistryVersionSource(timeout=settings.timeout),
            ResolutionCache(),
            semver=request.semver,
            cache_ttl=settings.cache_ttl,
            max_concurrency=settings.max_concurrency,
        )
        result = await checker.check(manifest)

        to_update = select_for_update(result.outdated, include_peer=request.include_peer)
        updated_content = apply_updates(content, to_update, dialect) if to_update else content

        return _build_response(ecosystem, content, updated_content, result)

    except HTTPException:
        # Re-raise HTTP exceptions (don't convert to 500)
        raise
    except ValidationError as e:
        variables = ", ".join(f"DEPBUMP_{str(error['loc'][0]).upper()}" for error in e.errors() if error['loc'])
        logger.error("Invalid configuration: %s", e)
        raise HTTPException(status_code=500, detail=f"Invalid server configuration: {variables}")
    except DepBumpError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error processing dependencies")
        raise HTTPException(status_code=500, detail=f"Error processing dependencies: {str(e)}")


@app.post("/api/upload", response_model=CheckResponse)
async def upload_file(
    file: UploadFile = File(...),
    ecosystem: Optional[str] = Form(None),
    semver: bool = Form(False),
    include_peer: bool = Form(False),
):
    """Upload and check a package.json or pubspec.yaml file."""
    try:
        if not file.filename:
            raise HTTPException(status_code=400, detail="No file uploaded")

        content = await file.read()
        text_content = content.decode("utf-8")

        # The filename is a better hint than the content
        if not ecosystem:
            detected = identify(text_content, file.filename)
            ecosystem = detected if detected != "unknown" else None

        request = CheckRequest(
            content=text_content,
            ecosystem=ecosystem,
            semver=semver,
            include_peer=include_peer,
        )

        return await check_dependencies(request)

    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be valid UTF-8 text")
    except HTTPException:
        # Re-raise HTTP exceptions
        raise
    except Exception as e:
        logger.exception("Error processing file")
        raise HTTPException(status_code=500, detail=f"Error processing file: {str(e)}")


@app.post("/api/download")
async def download_updated_file(request: CheckRequest):
    """Return the updated manifest as a file download."""
    try:
        response = await check_dependencies(request)

        if not response.has_changes:
            raise HTTPException(status_code=400, detail="No changes to download")

        filename = MANIFEST_FILENAMES[response.ecosystem]
        return Response(
            content=response.updated_content.encode("utf-8"),
            media_type="text/plain; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except HTTPException:
        # Re-raise HTTP exceptions
        raise
    except Exception as e:
        logger.exception("Error generating file")
        raise HTTPException(status_code=500, detail=f"Error generating file: {str(e)}")


def _build_response(
    ecosystem: str, original_content: str, updated_content: str, result: CheckResult
) -> CheckResponse:
    outdated = [
        OutdatedItem(
            name=item.name,
            section=item.dependency.section.value,
            line=item.dependency.anchor.line,
            current_version=item.dependency.raw_constraint,
            new_version=bump_token(item.dependency.raw_constraint, item.latest_version) or item.latest_version,
            change=item.change.value,
        )
        for item in result.outdated
    ]
    skipped = [
        SkippedItem(
            name=item.name,
            current_version=item.original_version,
            latest_version=item.latest_version,
            reason=item.reason.value,
        )
        for item in result.semver_skipped
    ]
    errors = [ErrorItem(name=error.name, error=error.message) for error in result.errors]

    return CheckResponse(
        original_content=original_content,
        updated_content=updated_content,
        outdated=outdated,
        semver_skipped=skipped,
        errors=errors,
        has_changes=updated_content != original_content,
        ecosystem=ecosystem,
    )


def get_index_html() -> str:
    """Return the main HTML page."""
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>depbump - Dependency Checker</title>
        <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css" rel="stylesheet">
        <style>
            .upload-area {
                border: 2px dashed #dee2e6;
                padding: 2rem;
                text-align: center;
                border-radius: 0.375rem;
                transition: border-color 0.2s;
            }
            .upload-area:hover { border-color: #0d6efd; }
            .upload-area.dragover { border-color: #0d6efd; background-color: #f8f9fa; }
            .change-major { background-color: #dc3545; }
            .change-minor { background-color: #ffc107; color: #212529; }
            .change-patch { background-color: #198754; }
        </style>
    </head>
    <body>
        <div class="container-fluid py-4">
            <div class="text-center mb-5">
                <h1 class="display-4 fw-bold text-primary">depbump</h1>
                <p class="lead text-muted">Check package.json and pubspec.yaml dependencies for newer versions</p>
            </div>

            <div class="row">
                <div class="col-lg-6 mb-4">
                    <div class="card h-100">
                        <div class="card-header">
                            <h3 class="card-title mb-0">📄 Manifest</h3>
                        </div>
                        <div class="card-body">
                            <div class="upload-area mb-3" id="uploadArea">
                                <h5>📁 Upload package.json or pubspec.yaml</h5>
                                <p class="text-muted mb-2">Drop your file here or click to browse</p>
                                <input type="file" id="fileInput" class="d-none" accept=".json,.yaml,.yml">
                            </div>

                            <textarea
                                id="manifestInput"
                                class="form-control font-monospace"
                                rows="14"
                                placeholder="Or paste your manifest here"
                            ></textarea>

                            <div class="row mt-3">
                                <div class="col-md-6">
                                    <label for="ecosystem" class="form-label">🔧 Ecosystem</label>
                                    <select id="ecosystem" class="form-select">
                                        <option value="">Auto-detect</option>
                                        <option value="npm">npm (package.json)</option>
                                        <option value="pub">pub (pubspec.yaml)</option>
                                    </select>
                                </div>
                                <div class="col-md-6 pt-4">
                                    <div class="form-check">
                                        <input class="form-check-input" type="checkbox" id="semver">
                                        <label class="form-check-label" for="semver">Respect version constraints</label>
                                    </div>
                                    <div class="form-check">
                                        <input class="form-check-input" type="checkbox" id="includePeer">
                                        <label class="form-check-label" for="includePeer">Update peer dependencies</label>
                                    </div>
                                </div>
                            </div>

                            <button id="checkBtn" class="btn btn-primary w-100 mt-3" disabled>
                                <span id="checkSpinner" class="spinner-border spinner-border-sm me-2 d-none"></span>
                                🔍 Check Dependencies
                            </button>
                        </div>
                    </div>
                </div>

                <div class="col-lg-6 mb-4">
                    <div class="card h-100">
                        <div class="card-header d-flex justify-content-between align-items-center">
                            <h3 class="card-title mb-0">📊 Results</h3>
                            <button id="downloadBtn" class="btn btn-success btn-sm d-none">📥 Download Updated</button>
                        </div>
                        <div class="card-body">
                            <div id="summaryAlert"></div>
                            <div id="outdatedContainer" class="mb-3"></div>
                            <div id="skippedContainer" class="mb-3"></div>
                            <pre id="updatedContent" class="bg-light p-3 rounded font-monospace small d-none"></pre>
                        </div>
                    </div>
                </div>
            </div>
        </div>

        <script>
            const fileInput = document.getElementById('fileInput');
            const uploadArea = document.getElementById('uploadArea');
            const manifestInput = document.getElementById('manifestInput');
            const checkBtn = document.getElementById('checkBtn');
            const checkSpinner = document.getElementById('checkSpinner');
            const summaryAlert = document.getElementById('summaryAlert');
            const outdatedContainer = document.getElementById('outdatedContainer');
            const skippedContainer = document.getElementById('skippedContainer');
            const updatedContent = document.getElementById('updatedContent');
            const downloadBtn = document.getElementById('downloadBtn');

            let currentResults = null;

            fileInput.addEventListener('change', (e) => handleFile(e.target.files[0]));
            uploadArea.addEventListener('click', () => fileInput.click());
            uploadArea.addEventListener('dragover', (e) => { e.preventDefault(); uploadArea.classList.add('dragover'); });
            uploadArea.addEventListener('dragleave', () => uploadArea.classList.remove('dragover'));
            uploadArea.addEventListener('drop', (e) => {
                e.preventDefault();
                uploadArea.classList.remove('dragover');
                handleFile(e.dataTransfer.files[0]);
            });
            manifestInput.addEventListener('input', updateCheckButton);
            checkBtn.addEventListener('click', checkDependencies);
            downloadBtn.addEventListener('click', downloadUpdatedFile);

            function handleFile(file) {
                if (!file) return;
                const reader = new FileReader();
                reader.onload = (e) => {
                    manifestInput.value = e.target.result;
                    if (file.name.endsWith('package.json')) document.getElementById('ecosystem').value = 'npm';
                    if (file.name.endsWith('pubspec.yaml')) document.getElementById('ecosystem').value = 'pub';
                    updateCheckButton();
                };
                reader.readAsText(file);
            }

            function updateCheckButton() {
                checkBtn.disabled = manifestInput.value.trim().length === 0;
            }

            function requestBody() {
                return JSON.stringify({
                    content: manifestInput.value,
                    ecosystem: document.getElementById('ecosystem').value || null,
                    semver: document.getElementById('semver').checked,
                    include_peer: document.getElementById('includePeer').checked
                });
            }

            function escapeHtml(text) {
                const div = document.createElement('div');
                div.textContent = text;
                return div.innerHTML;
            }

            async function checkDependencies() {
                checkBtn.disabled = true;
                checkSpinner.classList.remove('d-none');

                try {
                    const response = await fetch('/api/check', {
                        method: 'POST',
                        headers: { 'Content-Type': 'application/json' },
                        body: requestBody()
                    });

                    if (!response.ok) {
                        const errorData = await response.json();
                        throw new Error(errorData.detail || 'Failed to check dependencies');
                    }

                    currentResults = await response.json();
                    displayResults(currentResults);
                } catch (error) {
                    showError(error.message);
                } finally {
                    checkBtn.disabled = false;
                    checkSpinner.classList.add('d-none');
                }
            }

            function displayResults(results) {
                const count = results.outdated.length;
                const errors = results.errors.length
                    ? `<br><small>${results.errors.length} dependencies could not be checked</small>` : '';
                summaryAlert.innerHTML = count
                    ? `<div class="alert alert-warning"><strong>⬆️ ${count} dependencies can be updated</strong>${errors}</div>`
                    : `<div class="alert alert-success"><strong>✅ All dependencies are up to date</strong>${errors}</div>`;

                outdatedContainer.innerHTML = results.outdated.map(item => `
                    <div class="border rounded p-2 mb-2 d-flex justify-content-between">
                        <div><strong>${escapeHtml(item.name)}</strong> <small class="text-muted">${item.section}</small></div>
                        <div>
                            ${escapeHtml(item.current_version)} →
                            <span class="badge change-${item.change}">${escapeHtml(item.new_version)}</span>
                        </div>
                    </div>
                `).join('');

                skippedContainer.innerHTML = results.semver_skipped.map(item => `
                    <div class="text-muted small">
                        ${escapeHtml(item.name)} ${escapeHtml(item.current_version)}
                        ${item.latest_version ? '→ ' + escapeHtml(item.latest_version) : ''} (${item.reason})
                    </div>
                `).join('');

                updatedContent.textContent = results.updated_content;
                updatedContent.classList.toggle('d-none', !results.has_changes);
                downloadBtn.classList.toggle('d-none', !results.has_changes);
            }

            async function downloadUpdatedFile() {
                if (!currentResults) return;

                try {
                    const response = await fetch('/api/download', {
                        method: 'POST',
                        headers: { 'Content-Type': 'application/json' },
                        body: requestBody()
                    });

                    if (!response.ok) {
                        throw new Error('Failed to generate download');
                    }

                    const blob = await response.blob();
                    const url = window.URL.createObjectURL(blob);
                    const a = document.createElement('a');
                    a.href = url;
                    a.download = currentResults.ecosystem === 'pub' ? 'pubspec.yaml' : 'package.json';
                    document.body.appendChild(a);
                    a.click();
                    window.URL.revokeObjectURL(url);
                    document.body.removeChild(a);
                } catch (error) {
                    showError('Error downloading file: ' + error.message);
                }
            }

            function showError(message) {
                summaryAlert.innerHTML = `<div class="alert alert-danger"><strong>❌ Error:</strong> ${escapeHtml(message)}</div>`;
                outdatedContainer.innerHTML = '';
                skippedContainer.innerHTML = '';
                updatedContent.classList.add('d-none');
                downloadBtn.classList.add('d-none');
            }

            updateCheckButton();
        </script>
    </body>
    </html>
    """


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
