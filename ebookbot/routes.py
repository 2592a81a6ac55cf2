from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, HTMLResponse

from ebookbot.auth import verify_download
from ebookbot.config import WebSettings, get_web_settings

router = APIRouter()

PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; text-align: center; margin-top: 100px; background-color: #f9f9f9; }}
        .box {{ background: #fff; padding: 40px; border-radius: 10px; display: inline-block; box-shadow: 0px 0px 10px rgba(0,0,0,0.1); }}
        h1 {{ color: {color}; }}
    </style>
</head>
<body>
    <div class="box">
        <h1>{heading}</h1>
        {body}
    </div>
</body>
</html>
"""


@router.get("/success", response_class=HTMLResponse)
def success(session_id: Optional[str] = None):
    body = "<p>Your payment was successful.</p>"
    if session_id:
        body += f"<p>Back in Discord, type <code>!paid {escape(session_id)}</code> to get your ebook.</p>"
    body += "<p>You can now close this page.</p>"
    return PAGE.format(title="Payment Successful", color="green", heading="✅ Thank You!", body=body)


@router.get("/cancel", response_class=HTMLResponse)
def cancel():
    body = "<p>Your payment was cancelled. No charge was made.</p><p>Type <code>!ebooks</code> to start again.</p>"
    return PAGE.format(title="Payment Cancelled", color="#c0392b", heading="❌ Payment Cancelled", body=body)


@router.get("/files/{filename}", dependencies=[Depends(verify_download)])
def download(filename: str, settings: WebSettings = Depends(get_web_settings)):
    files_dir = settings.files_dir.resolve()
    path = (files_dir / filename).resolve()

    if path.parent != files_dir or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(path, media_type="application/pdf", filename=path.name)
