# services/ui_service/app/main.py

import gradio as gr
import logging
from functools import partial
from typing import Optional
from pydantic import ValidationError

from core.errors import AppError, user_message
from core.models import Category, ImageProcessRequest, Page, SortKey
from services.api_gateway.app.container import AppContainer
from .views import (
    FILE_TABLE_HEADERS, NOT_CONFIGURED_BANNER, empty_listing_hint, file_rows, gallery_items,
    identity_markdown, image_details, listing_summary, read_local_file, save_download,
)

# Setup logger
logger = logging.getLogger("SFH_Core").getChild("UIService")


def _failure(action: str, e: Exception) -> str:
    """Logs a failed UI action and returns the one-line message to show."""
    if isinstance(e, AppError):
        logger.warning(f"{action} failed: {e.message}")
    else:
        logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
    return f"❌ {user_message(e)}"


def _lock():
    return gr.update(interactive=False)


def _unlock():
    return gr.update(interactive=True)


def build_ui(container: AppContainer) -> gr.Blocks:
    """Builds the Gradio interface on top of the shared service container."""
    store = container.store

    # --- Renderers ---

    def session_view():
        identity = store.identity
        signed_in = identity is not None
        return (
            gr.update(visible=not signed_in),
            gr.update(visible=signed_in),
            f"Signed in as **{identity.email}**" if signed_in else "",
            gr.update(selected=container.router.current.value),
            store.profile_url,
            identity_markdown(identity),
        )

    def files_view():
        view = container.view_for()
        shown = view.visible()
        summary = listing_summary(len(shown), len(view.snapshot), view.truncated, view.last_error)
        if not shown and not view.last_error:
            filtered = bool(view.state.search_text) or view.state.category != Category.ALL
            summary += "\n\n" + empty_listing_hint(filtered)
        return (
            {"headers": FILE_TABLE_HEADERS, "data": file_rows(shown)},
            summary,
            gr.update(choices=[obj.name for obj in shown], value=None),
        )

    def gallery_view():
        viewer = container.gallery
        images = viewer.images() if container.configured else []
        selected = viewer.selected_image() if container.configured else None
        summary = f"❌ {viewer.last_error}" if viewer.last_error else f"{len(images)} images"
        return (
            gallery_items(images),
            gr.update(visible=selected is not None),
            selected.url if selected else None,
            image_details(selected),
            summary,
        )

    # --- Auth / navigation ---

    async def on_sign_in(email: str, password: str):
        try:
            await container.tracker.sign_in(email, password)
            message = "✅ Signed in."
        except Exception as e:
            message = _failure("sign in", e)
        return (message, *session_view())

    async def on_sign_up(email: str, password: str):
        try:
            identity = await container.tracker.sign_up(email, password)
            message = "✅ Signed up." if identity else "✅ Sign up successful! Please check your email to verify."
        except Exception as e:
            message = _failure("sign up", e)
        return (message, *session_view())

    async def on_sign_out():
        try:
            await container.tracker.sign_out()
            message = "Signed out."
        except Exception as e:
            message = _failure("sign out", e)
        return (message, *session_view())

    def on_navigate(page: Page):
        container.router.navigate(page.value)

    async def on_load():
        return (NOT_CONFIGURED_BANNER if not container.configured else "", *session_view())

    # --- Profile ---

    async def on_profile_upload(path: Optional[str], progress=gr.Progress()):
        try:
            result = await container.uploads.upload_profile_image(read_local_file(path), progress=progress)
            message = "✅ Profile picture uploaded successfully!"
            if result.profile_synced is False:
                message += " It could not be saved to your account, so it may not persist across sessions."
        except Exception as e:
            message = _failure("profile upload", e)
        return (message, None, store.profile_url)

    # --- Storage ---

    async def on_refresh_files(search: str, category: str, sort: str):
        view = container.view_for()
        view.set_filters(search_text=search or "", category=category, sort_key=sort)
        await view.refresh()
        return files_view()

    def on_filter_change(search: str, category: str, sort: str):
        container.view_for().set_filters(search_text=search or "", category=category, sort_key=sort)
        return files_view()

    def on_clear_filters():
        state = container.view_for().reset_filters()
        return (state.search_text, state.category.value, state.sort_key.value, *files_view())

    async def on_file_upload(path: Optional[str], progress=gr.Progress()):
        try:
            result = await container.uploads.upload_file(read_local_file(path), progress=progress)
            message = f"✅ Uploaded as `{result.key}`  \n{result.public_url}"
        except Exception as e:
            message = _failure("file upload", e)
        await container.view_for().ensure_fresh()
        return (message, None, *files_view())

    async def on_download(name: Optional[str]):
        if not name:
            return "Please select a file first.", None
        try:
            target = await container.view_for().download(name, save=partial(save_download, name=name))
            return f"✅ Downloaded `{name}`.", target
        except Exception as e:
            return _failure("download", e), None

    async def on_delete(name: Optional[str], confirmed: bool):
        if not name:
            return ("Please select a file first.", confirmed, *files_view())
        try:
            deleted = await container.view_for().delete(name, confirmed=confirmed)
            message = f"✅ Deleted `{name}`." if deleted else "Please tick the confirmation box to delete this file."
        except Exception as e:
            message = _failure("delete", e)
        return (message, False, *files_view())

    async def on_process(name: Optional[str], operation: str, width: float, height: float, quality: float):
        if not name:
            return ("Please select a file first.", *files_view())
        try:
            request = ImageProcessRequest(
                bucket=container.view_for().bucket,
                file_name=name,
                operation=operation,
                width=int(width) if operation == "resize" else None,
                height=int(height) if operation == "resize" else None,
                quality=int(quality) if operation == "compress" else None,
            )
        except ValidationError as e:
            return (f"❌ Invalid processing options: {e.errors()[0]['msg']}", *files_view())
        try:
            response = await container.processor.process(request)
            message = f"✅ Image processed successfully! Processed file: `{response.processed_file_name}`"
        except Exception as e:
            message = _failure("image processing", e)
        await container.view_for().ensure_fresh()
        return (message, *files_view())

    # --- Gallery ---

    async def on_gallery_load():
        await container.gallery.refresh()
        return gallery_view()

    async def on_gallery_upload(path: Optional[str], progress=gr.Progress()):
        try:
            await container.gallery.upload(read_local_file(path), progress=progress)
            message = "✅ Image added to gallery."
        except Exception as e:
            message = _failure("gallery upload", e)
        return (message, None, *gallery_view())

    def on_gallery_select(evt: gr.SelectData):
        images = container.gallery.images()
        if evt.index is not None and 0 <= evt.index < len(images):
            container.gallery.select(images[evt.index].name)
        return gallery_view()

    def on_gallery_close():
        container.gallery.close_overlay()
        return gallery_view()

    async def on_gallery_delete(confirmed: bool):
        name = container.gallery.selected
        if not name:
            return ("No image selected.", False, *gallery_view())
        try:
            deleted = await container.gallery.delete(name, confirmed=confirmed)
            message = f"✅ Deleted `{name}`." if deleted else "Please tick the confirmation box to delete this image."
        except Exception as e:
            message = _failure("gallery delete", e)
        return (message, False, *gallery_view())

    # --- Build Gradio Interface ---
    with gr.Blocks(theme=gr.themes.Soft(), title="Supa Files Hub") as demo:
        gr.Markdown("# Supa Files Hub")
        banner = gr.Markdown(NOT_CONFIGURED_BANNER if not container.configured else "")
        status = gr.Markdown()

        with gr.Column(visible=store.identity is None) as auth_panel:
            gr.Markdown("Sign in to access your profile, storage, and gallery features.")
            email_input = gr.Textbox(label="Email", placeholder="you@example.com")
            password_input = gr.Textbox(label="Password", type="password")
            with gr.Row():
                sign_in_button = gr.Button("Sign In", variant="primary")
                sign_up_button = gr.Button("Sign Up")

        with gr.Column(visible=store.identity is not None) as app_panel:
            with gr.Row():
                user_label = gr.Markdown()
                sign_out_button = gr.Button("Sign Out", size="sm")

            with gr.Tabs(selected=container.router.current.value) as tabs:
                with gr.Tab("Profile", id=Page.PROFILE.value) as profile_tab:
                    with gr.Row():
                        with gr.Column(scale=1):
                            avatar = gr.Image(label="Profile picture", interactive=False, height=200)
                        with gr.Column(scale=2):
                            avatar_file = gr.File(label="Profile picture (JPG, PNG or GIF, max 5MB)", type="filepath", file_types=["image"])
                            avatar_button = gr.Button("Upload Profile Picture", variant="primary")
                    profile_info = gr.Markdown()

                with gr.Tab("Storage", id=Page.STORAGE.value) as storage_tab:
                    with gr.Row():
                        storage_file = gr.File(label=f"Upload File to {container.settings.USER_FILES_BUCKET}", type="filepath")
                        storage_upload_button = gr.Button("⬆️ Upload", variant="primary")
                    with gr.Row():
                        search_input = gr.Textbox(label="Search", placeholder="File name contains...")
                        category_input = gr.Dropdown(label="Type", choices=[c.value for c in Category], value=Category.ALL.value)
                        sort_input = gr.Dropdown(label="Sort by", choices=[s.value for s in SortKey], value=SortKey.CREATED_AT.value)
                    with gr.Row():
                        refresh_button = gr.Button("🔄 Refresh")
                        clear_button = gr.Button("Clear filters")
                    file_summary = gr.Markdown()
                    file_table = gr.Dataframe(headers=FILE_TABLE_HEADERS, interactive=False)
                    file_choice = gr.Dropdown(label="Selected file", choices=[], interactive=True)
                    with gr.Row():
                        download_button = gr.Button("Download")
                        confirm_delete = gr.Checkbox(label="I understand this permanently deletes the file", value=False)
                        delete_button = gr.Button("Delete", variant="stop")
                    download_output = gr.File(label="Downloaded file", interactive=False)
                    with gr.Accordion("Image processing", open=False):
                        operation_input = gr.Radio(label="Operation", choices=["resize", "compress", "thumbnail"], value="resize")
                        with gr.Row():
                            width_input = gr.Slider(label="Width (px)", minimum=10, maximum=2000, value=300, step=1)
                            height_input = gr.Slider(label="Height (px)", minimum=10, maximum=2000, value=300, step=1)
                            quality_input = gr.Slider(label="Quality (%)", minimum=10, maximum=100, value=80, step=1)
                        process_button = gr.Button("Process Image")

                with gr.Tab("Gallery", id=Page.GALLERY.value) as gallery_tab:
                    with gr.Row():
                        gallery_file = gr.File(label="Upload to Gallery", type="filepath", file_types=["image"])
                        gallery_upload_button = gr.Button("📤 Upload to Gallery", variant="primary")
                    gallery_summary = gr.Markdown()
                    gallery = gr.Gallery(label="Your images", columns=3, allow_preview=False)
                    with gr.Group(visible=False) as overlay:
                        overlay_image = gr.Image(label="Selected image", interactive=False)
                        overlay_info = gr.Markdown()
                        with gr.Row():
                            confirm_gallery_delete = gr.Checkbox(label="I understand this permanently deletes the image", value=False)
                            gallery_delete_button = gr.Button("Delete", variant="stop")
                            close_button = gr.Button("✕ Close")

        session_outputs = [auth_panel, app_panel, user_label, tabs, avatar, profile_info]
        file_outputs = [file_table, file_summary, file_choice]
        gallery_outputs = [gallery, overlay, overlay_image, overlay_info, gallery_summary]
        filter_inputs = [search_input, category_input, sort_input]

        # --- Connect UI elements to functions ---
        demo.load(on_load, None, [banner, *session_outputs])
        sign_in_button.click(_lock, None, sign_in_button, queue=False) \
            .then(on_sign_in, [email_input, password_input], [status, *session_outputs]) \
            .then(_unlock, None, sign_in_button)
        sign_up_button.click(_lock, None, sign_up_button, queue=False) \
            .then(on_sign_up, [email_input, password_input], [status, *session_outputs]) \
            .then(_unlock, None, sign_up_button)
        sign_out_button.click(on_sign_out, None, [status, *session_outputs])

        profile_tab.select(partial(on_navigate, Page.PROFILE), None, None)
        storage_tab.select(partial(on_navigate, Page.STORAGE), None, None) \
            .then(on_refresh_files, filter_inputs, file_outputs)
        gallery_tab.select(partial(on_navigate, Page.GALLERY), None, None) \
            .then(on_gallery_load, None, gallery_outputs)

        avatar_button.click(_lock, None, avatar_button, queue=False) \
            .then(on_profile_upload, [avatar_file], [status, avatar_file, avatar]) \
            .then(_unlock, None, avatar_button)

        storage_upload_button.click(_lock, None, storage_upload_button, queue=False) \
            .then(on_file_upload, [storage_file], [status, storage_file, *file_outputs]) \
            .then(_unlock, None, storage_upload_button)
        refresh_button.click(on_refresh_files, filter_inputs, file_outputs)
        for control in filter_inputs:
            control.change(on_filter_change, filter_inputs, file_outputs)
        clear_button.click(on_clear_filters, None, [*filter_inputs, *file_outputs])
        download_button.click(_lock, None, download_button, queue=False) \
            .then(on_download, [file_choice], [status, download_output]) \
            .then(_unlock, None, download_button)
        delete_button.click(_lock, None, delete_button, queue=False) \
            .then(on_delete, [file_choice, confirm_delete], [status, confirm_delete, *file_outputs]) \
            .then(_unlock, None, delete_button)
        process_button.click(_lock, None, process_button, queue=False) \
            .then(on_process, [file_choice, operation_input, width_input, height_input, quality_input], [status, *file_outputs]) \
            .then(_unlock, None, process_button)

        gallery_upload_button.click(_lock, None, gallery_upload_button, queue=False) \
            .then(on_gallery_upload, [gallery_file], [status, gallery_file, *gallery_outputs]) \
            .then(_unlock, None, gallery_upload_button)
        gallery.select(on_gallery_select, None, gallery_outputs)
        close_button.click(on_gallery_close, None, gallery_outputs)
        gallery_delete_button.click(_lock, None, gallery_delete_button, queue=False) \
            .then(on_gallery_delete, [confirm_gallery_delete], [status, confirm_gallery_delete, *gallery_outputs]) \
            .then(_unlock, None, gallery_delete_button)

    return demo
