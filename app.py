import asyncio
import os
import tempfile

import streamlit as st

from config import APP_TITLE, TOP_K_RETRIEVE
from pdfrag.errors import PdfRagError
from pdfrag.logger import configure_logging
from pdfrag.pipeline import RagPipeline
from pdfrag.types import AnswerResult

st.set_page_config(page_title=APP_TITLE, page_icon="📚", layout="wide")
st.title(APP_TITLE)

if "loop" not in st.session_state:
    configure_logging()
    st.session_state.loop = asyncio.new_event_loop()
if "history" not in st.session_state:
    st.session_state.history = []

loop = st.session_state.loop


def run(coro):
    return loop.run_until_complete(coro)


def iter_stream(answer):
    agen = answer.__aiter__()
    while True:
        try:
            yield loop.run_until_complete(agen.__anext__())
        except StopAsyncIteration:
            return


with st.sidebar:
    st.header("Runtime Config")
    top_k = st.slider("Top-K retrieval", 3, 20, TOP_K_RETRIEVE)
    threshold = st.slider("Similarity threshold", 0.0, 1.0, 0.5, 0.05)
    use_reranking = st.checkbox("LLM re-ranking", value=True)
    st.caption("Required secrets: GROQ_API_KEY, JINA_API_KEY")

if "pipeline" not in st.session_state:
    try:
        st.session_state.pipeline = RagPipeline.from_env()
    except PdfRagError as exc:
        st.error(str(exc))
        st.stop()

pipeline: RagPipeline = st.session_state.pipeline

uploaded = st.file_uploader("Upload a PDF", type=["pdf"])
if uploaded and st.button("Process & Build Index", type="primary"):
    bar = st.progress(0.0)
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, os.path.basename(uploaded.name))
        with open(path, "wb") as f:
            f.write(uploaded.getbuffer())
        try:
            result = run(pipeline.ingest_pdf(path, on_progress=lambda e: bar.progress(e.percentage / 100, text=e.message)))
        except PdfRagError as exc:
            st.error(f"Could not process the PDF: {exc}")
        else:
            st.session_state.history = []
            st.success(f"Indexed {result.total_chunks} chunks from {result.total_pages} pages in {result.processing_ms} ms.")

with st.expander("Import / Export index"):
    if pipeline.initialized:
        st.download_button("Download index", pipeline.export_json(), file_name="rag_index.json", mime="application/json")
    imported = st.file_uploader("Import index", type=["json"], key="import")
    if imported and st.button("Load index"):
        try:
            meta = pipeline.import_index(imported.getvalue())
        except PdfRagError as exc:
            st.error(str(exc))
        else:
            st.success(f"Loaded index with {meta.get('documentStats', {}).get('total_chunks', 0)} chunks.")

if pipeline.initialized:
    st.caption(f"Active document: {pipeline.document_name or 'imported index'}")
    for turn in st.session_state.history[-6:]:
        st.chat_message("user").write(turn["question"])
        st.chat_message("assistant").write(turn["answer"])

    question = st.chat_input("Ask a question about the document")
    if question:
        st.chat_message("user").write(question)
        try:
            answer = run(
                pipeline.generate_response(
                    question, limit=top_k, threshold=threshold, use_reranking=use_reranking
                )
            )
            with st.chat_message("assistant"):
                if isinstance(answer, AnswerResult):
                    text = answer.answer
                    st.write(text)
                    if answer.cached:
                        st.caption("cached")
                else:
                    text = st.write_stream(iter_stream(answer))
                pages = sorted({s["page_number"] for s in answer.sources})
                if pages:
                    st.caption("Sources: " + ", ".join(f"page {p}" for p in pages))
        except PdfRagError as exc:
            st.error(f"Request failed: {exc}")
        else:
            st.session_state.history.append({"question": question, "answer": text})
else:
    st.info("Upload a PDF or import an index to start asking questions.")
