"""Streamlit app: image -> screen-print ink channels (CMYK / spot / underbase)."""

import logging

import numpy as np
import streamlit as st

from separation.background_remover import (
    apply_attributes,
    create_mask_overlay,
    empty_mask,
    paint_mask,
)
from separation.buffers import PillowCodec, PixelBuffer
from separation.config import (
    AdjustmentSettings,
    BgRemoveMode,
    BrushType,
    ProcessingConfig,
    SeparationMode,
    default_spot_colors,
    new_spot_color,
)
from separation.errors import SeparationError
from separation.exporter import channel_report, create_zip
from separation.palette import extract_dominant_hex
from separation.processor import process_image

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

codec = PillowCodec()


def _checkerboard(h: int, w: int, cell: int = 16) -> np.ndarray:
    """Generate a checkerboard pattern (H, W, 3) as transparency background."""
    rows = np.arange(h) // cell
    cols = np.arange(w) // cell
    grid = (rows[:, None] + cols[None, :]) % 2  # 0 or 1
    light, dark = 180, 120
    img = np.where(grid[..., None], light, dark).astype(np.uint8)
    return np.repeat(img, 3, axis=-1).reshape(h, w, 3)


def _over_checkerboard(buffer: PixelBuffer) -> np.ndarray:
    """Flatten an RGBA buffer onto a checkerboard for display."""
    bg = _checkerboard(buffer.height, buffer.width).astype(np.float64)
    rgb = buffer.rgb.astype(np.float64)
    a = buffer.alpha.astype(np.float64)[..., None] / 255.0
    return (rgb * a + bg * (1.0 - a)).astype(np.uint8)


def _film_preview(buffer: PixelBuffer) -> np.ndarray:
    """Black-ink-on-white view of a channel raster."""
    a = buffer.alpha.astype(np.float64) / 255.0
    gray = (255.0 * (1.0 - a)).astype(np.uint8)
    return np.repeat(gray[..., None], 3, axis=-1)


st.set_page_config(page_title="Screen-Print Channel Separation", layout="wide")
st.title("Screen-Print Channel Separation")
st.caption("Upload an image → adjust & remove background → separate into CMYK or spot inks → download films")

# --- Sidebar: Adjustments ---
st.sidebar.header("Adjustments")
brightness = st.sidebar.slider("Brightness", -100, 100, 0)
contrast = st.sidebar.slider("Contrast", -100, 100, 0)
gamma = st.sidebar.slider("Gamma", 0.1, 3.0, 1.0, step=0.05)

st.sidebar.subheader("Background removal")
remove_bg = st.sidebar.checkbox("Remove background", value=False)
bg_mode = st.sidebar.selectbox(
    "Background",
    list(BgRemoveMode),
    format_func=lambda m: m.value.capitalize(),
    disabled=not remove_bg,
)
custom_bg = st.sidebar.color_picker(
    "Custom background color", "#000000",
    disabled=not remove_bg or bg_mode is not BgRemoveMode.CUSTOM,
)
bg_threshold = st.sidebar.slider("Sensitivity", 0, 100, 20, disabled=not remove_bg)

adjustments = AdjustmentSettings(
    brightness=brightness,
    contrast=contrast,
    gamma=gamma,
    remove_bg=remove_bg,
    bg_remove_mode=bg_mode,
    custom_bg_color=custom_bg,
    bg_threshold=bg_threshold,
)

# --- File Upload ---
uploaded = st.file_uploader("Upload image", type=["png", "jpg", "jpeg", "bmp", "gif", "webp"])

if uploaded is None:
    st.stop()

file_key = f"{uploaded.name}:{uploaded.size}"
if st.session_state.get("file_key") != file_key:
    try:
        image = codec.decode(uploaded.getvalue())
    except SeparationError as e:
        st.error(f"Could not open image: {e}")
        st.stop()
    st.session_state["file_key"] = file_key
    st.session_state["image"] = image
    st.session_state["mask"] = empty_mask(image.width, image.height)
    st.session_state["suggestions"] = extract_dominant_hex(image)
    st.session_state.setdefault("spot_colors", default_spot_colors())
    st.session_state.pop("results", None)

image: PixelBuffer = st.session_state["image"]
img_w, img_h = image.size

# --- Step 1: Preview & stencil ---
st.subheader("Step 1: Preview")
col_orig, col_proc = st.columns(2)
with col_orig:
    st.image(
        create_mask_overlay(image, st.session_state["mask"]),
        caption=f"Original with stencil ({img_w} × {img_h} px)",
        use_container_width=True,
    )
with col_proc:
    processed = apply_attributes(image, adjustments, st.session_state["mask"])
    st.image(_over_checkerboard(processed), caption="Processed", use_container_width=True)

with st.expander("Stencil brush (erase / keep)"):
    st.caption("Red areas are always erased, green areas are always kept.")
    b1, b2, b3, b4 = st.columns(4)
    with b1:
        brush = st.radio(
            "Brush", list(BrushType), format_func=lambda b: b.value.capitalize(),
            horizontal=True, key="brush",
        )
    with b2:
        bx = st.number_input("X (px)", 0, max(img_w - 1, 0), img_w // 2, key="brush_x")
    with b3:
        by = st.number_input("Y (px)", 0, max(img_h - 1, 0), img_h // 2, key="brush_y")
    with b4:
        max_size = max(img_w, img_h, 2)
        size = st.slider("Size", 1, max_size, min(20, max_size), key="brush_size")

    s1, s2, s3 = st.columns([1, 1, 2])
    with s1:
        if st.button("Stamp", key="stamp"):
            st.session_state["mask"] = paint_mask(
                st.session_state["mask"], bx + 0.5, by + 0.5, size, brush
            )
            st.rerun()
    with s2:
        if st.button("Clear stencil", key="clear_mask"):
            st.session_state["mask"] = empty_mask(img_w, img_h)
            st.rerun()
    with s3:
        stencil_file = st.file_uploader("…or load a stencil PNG", type=["png"], key="stencil")
        if stencil_file is not None and st.button("Use stencil", key="use_stencil"):
            try:
                st.session_state["mask"] = codec.decode(stencil_file.getvalue())
            except SeparationError as e:
                st.error(f"Could not open stencil: {e}")
            else:
                st.rerun()

# --- Step 2: Separation settings ---
st.subheader("Step 2: Separation")
mode = st.radio(
    "Mode", list(SeparationMode), format_func=lambda m: m.value, horizontal=True
)
include_white_base = st.checkbox("Include white underbase", value=False)

spot_colors = st.session_state["spot_colors"]
if mode is SeparationMode.SPOT:
    suggestions = st.session_state.get("suggestions", [])
    if suggestions:
        st.caption("Suggested from image:")
        sug_cols = st.columns(len(suggestions))
        for col, hex_color in zip(sug_cols, suggestions):
            with col:
                st.markdown(
                    f'<span style="background:{hex_color};padding:2px 18px;border:1px solid #ccc;">&nbsp;</span> '
                    f"`{hex_color}`",
                    unsafe_allow_html=True,
                )
                if st.button("Add", key=f"add_{hex_color}"):
                    spot_colors.append(new_spot_color(spot_colors, hex_color))
                    st.rerun()

    for i, spot in enumerate(list(spot_colors)):
        c1, c2, c3, c4 = st.columns([2, 1, 3, 1])
        with c1:
            spot.name = st.text_input("Name", spot.name, key=f"spot_name_{spot.id}")
        with c2:
            spot.color = st.color_picker("Color", spot.color, key=f"spot_color_{spot.id}")
        with c3:
            spot.threshold = st.slider(
                "Sensitivity", 0, 100, int(spot.threshold), key=f"spot_thr_{spot.id}"
            )
        with c4:
            if st.button("Remove", key=f"spot_rm_{spot.id}"):
                spot_colors.pop(i)
                st.rerun()

    new_hex = st.color_picker("New spot color", "#000000", key="new_spot_hex")
    if st.button("Add spot color"):
        spot_colors.append(new_spot_color(spot_colors, new_hex))
        st.rerun()

# --- Step 3: Process ---
st.subheader("Step 3: Generate Channels")

config = ProcessingConfig(
    mode=mode,
    spot_colors=list(spot_colors),
    include_white_base=include_white_base,
    adjustments=adjustments,
)

if st.button("Separate", type="primary"):
    with st.spinner("Separating channels..."):
        try:
            st.session_state["results"] = process_image(
                image, config, st.session_state["mask"], codec
            )
        except SeparationError as e:
            logger.exception("Separation failed")
            st.error(f"Processing failed: {e}")
            st.stop()

results = st.session_state.get("results")
if not results:
    st.stop()

st.subheader("Channels")
res_cols = st.columns(min(len(results), 4))
for i, (r, info) in enumerate(zip(results, channel_report(results))):
    with res_cols[i % len(res_cols)]:
        st.markdown(
            f"**{r.name}** "
            f'<span style="background:{r.color_hex};padding:2px 12px;border:1px solid #ccc;">&nbsp;</span>',
            unsafe_allow_html=True,
        )
        st.image(_film_preview(r.raster), use_container_width=True)
        st.caption(f"{info['coverage_pct']:.1f}% coverage")
        st.download_button(
            f"Download {info['file']} ({info['png_bytes'] // 1024} KB)",
            r.png,
            file_name=info["file"],
            mime="image/png",
            key=f"dl_{i}_{r.name}",
        )

zip_data = create_zip(results)
st.download_button(
    f"Download all (ZIP, {len(zip_data) // 1024} KB)",
    zip_data,
    file_name="channels.zip",
    mime="application/zip",
    key="dl_zip",
)
st.success(f"Generated {len(results)} channels.")
