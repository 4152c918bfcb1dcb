"""Dash callbacks wiring the layout to the orchestrator.

Callbacks run in the web server's worker threads; every orchestrator call is
marshalled onto the app's event loop thread through ``app.runtime``.
"""

import base64
import logging

from dash import ALL, Input, Output, State, callback_context, no_update

from .layout import record_label
from .models import CEFRLevel, Language
from .speech import apply_recognizer_result

logger = logging.getLogger(__name__)


def speech_control(state, speech):
    """What the browser should capture for ``state``, or None without a speech source.

    With a source that transcribes audio itself the browser only streams
    audio; otherwise its own recognizer supplies the text.
    """
    if speech is None:
        return None
    return {
        "recording": state.is_recording,
        "language": state.language.code,
        "transcriber": "server" if speech.transcribes_audio else "browser",
    }


def register_callbacks(app):
    orchestrator = app.orchestrator
    runtime = app.runtime

    @app.callback(
        Output("state_token", "data", allow_duplicate=True),
        [Input("start_button", "n_clicks")],
        [
            State("category_dropdown", "value"),
            State("scenario_dropdown", "value"),
            State("language_dropdown", "value"),
            State("level_dropdown", "value"),
            State("state_token", "data"),
        ],
        prevent_initial_call=True,
    )
    def start_conversation(n_clicks, category, scenario, language, level, token):
        if not n_clicks or not category:
            return no_update
        logger.info("Starting a conversation in category %r", category)
        runtime.call(orchestrator.set_language, Language(language))
        runtime.call(orchestrator.set_level, CEFRLevel(level))
        runtime.run(orchestrator.start_conversation(category, scenario or ""))
        return (token or 0) + 1

    @app.callback(
        Output("state_token", "data", allow_duplicate=True),
        [Input("reset_button", "n_clicks")],
        [State("state_token", "data")],
        prevent_initial_call=True,
    )
    def reset_conversation(n_clicks, token):
        if not n_clicks:
            return no_update
        runtime.call(orchestrator.reset_conversation)
        return (token or 0) + 1

    @app.callback(
        [
            Output("state_token", "data", allow_duplicate=True),
            Output("input_textarea", "value"),
        ],
        [Input("submit_button", "n_clicks")],
        [State("input_textarea", "value"), State("state_token", "data")],
        prevent_initial_call=True,
    )
    def submit_text(n_clicks, user_input, token):
        if not n_clicks or not user_input or not user_input.strip():
            return no_update, no_update
        runtime.call(orchestrator.submit_user_utterance, user_input.strip())
        return (token or 0) + 1, ""

    @app.callback(
        [
            Output("scenario_dropdown", "options"),
            Output("scenario_dropdown", "value"),
        ],
        [Input("category_dropdown", "value")],
        prevent_initial_call=True,
    )
    def select_category(category):
        runtime.call(orchestrator.select_category, category or "")
        return runtime.call(lambda: orchestrator.available_scenarios), None

    @app.callback(
        [
            Output("messages_container", "children"),
            Output("error_banner", "children"),
            Output("error_banner", "hidden"),
            Output("status_indicator", "hidden"),
            Output("submit_button", "disabled"),
            Output("record_button", "children"),
            Output("record_button", "disabled"),
            Output("interim_transcript", "children"),
            Output("audio_level_meter", "value"),
            Output("speech_control", "data"),
        ],
        [Input("poll_interval", "n_intervals"), Input("state_token", "data")],
        prevent_initial_call=False,
    )
    def render_state(n_intervals, token):
        state = runtime.call(orchestrator.snapshot)
        busy = state.is_generating_scenario or state.is_processing_feedback
        return (
            app.layout_builder.build_messages(state.transcript),
            state.last_error or "",
            not state.last_error,
            not busy,
            not state.has_started_conversation or state.is_generating_scenario,
            record_label(state.is_recording),
            orchestrator.speech is None,
            state.interim_transcript,
            round(state.audio_level * 100),
            speech_control(state, orchestrator.speech),
        )

    @app.callback(
        Output("state_token", "data", allow_duplicate=True),
        [Input("record_button", "n_clicks")],
        [State("state_token", "data")],
        prevent_initial_call=True,
    )
    def toggle_recording(n_clicks, token):
        if not n_clicks or orchestrator.speech is None:
            return no_update
        if runtime.call(lambda: orchestrator.is_recording):
            runtime.run(orchestrator.stop_recording())
        else:
            runtime.run(orchestrator.start_recording())
        return (token or 0) + 1

    @app.callback(
        Output("state_token", "data", allow_duplicate=True),
        [Input("speech_result", "data")],
        [State("state_token", "data")],
        prevent_initial_call=True,
    )
    def receive_speech_result(result, token):
        if not result or orchestrator.speech is None:
            return no_update
        runtime.call(apply_recognizer_result, orchestrator.speech, result)
        return (token or 0) + 1

    @app.callback(
        Output("audio_level_meter", "value", allow_duplicate=True),
        [Input("audio_chunk", "data")],
        prevent_initial_call=True,
    )
    def receive_audio_chunk(chunk):
        if not chunk or orchestrator.speech is None:
            return no_update
        try:
            pcm = base64.b64decode(chunk.get("pcm") or "", validate=True)
        except ValueError:
            logger.warning("Discarding an audio chunk that is not valid base64")
            return no_update
        runtime.call(orchestrator.speech.feed, pcm)
        return round(runtime.call(lambda: orchestrator.speech.level) * 100)

    @app.callback(
        Output("translation_output", "children"),
        [Input({"type": "translate_button", "index": ALL}, "n_clicks")],
        prevent_initial_call=True,
    )
    def translate_message(n_clicks):
        if not callback_context.triggered or not any(n_clicks):
            return no_update
        message_id = callback_context.triggered_id["index"]
        translation = runtime.run(orchestrator.translate_message(message_id))
        if translation is None:
            return no_update
        return translation

    # Auto-scroll to bottom
    app.clientside_callback(
        """
        function(messages_content) {
            if (messages_content && messages_content.length > 0) {
                setTimeout(function() {
                    const messagesContainer = document.getElementById('messages_container');
                    if (messagesContainer) {
                        messagesContainer.scrollTop = messagesContainer.scrollHeight;
                    }
                }, 100);
            }
            return window.dash_clientside.no_update;
        }
        """,
        Output("messages_container", "data-scroll-trigger", allow_duplicate=True),
        [Input("messages_container", "children")],
        prevent_initial_call=True,
    )

    # Microphone capture: browser speech recognition and PCM16 audio at 16 kHz
    app.clientside_callback(
        """
        function(control) {
            const clientside = window.dash_clientside;
            const capture = window.polyglotCapture || (window.polyglotCapture = {active: false});
            const post = function(storeId, data) {
                data.at = Date.now();
                clientside.set_props(storeId, {data: data});
            };

            if (!control || !control.recording) {
                if (capture.active) {
                    capture.active = false;
                    if (capture.recognizer) {
                        capture.recognizer.onend = null;
                        capture.recognizer.onerror = null;
                        capture.recognizer.abort();
                        capture.recognizer = null;
                    }
                    if (capture.processor) {
                        capture.processor.disconnect();
                        capture.processor = null;
                    }
                    if (capture.stream) {
                        capture.stream.getTracks().forEach(function(track) { track.stop(); });
                        capture.stream = null;
                    }
                    if (capture.context) {
                        capture.context.close();
                        capture.context = null;
                    }
                }
                return clientside.no_update;
            }
            if (capture.active) {
                return clientside.no_update;
            }
            capture.active = true;

            if (control.transcriber === 'browser') {
                const Recognition = window.SpeechRecognition || window.webkitSpeechRecognition;
                if (!Recognition) {
                    post('speech_result', {error: 'unsupported'});
                    return clientside.no_update;
                }
                const recognizer = new Recognition();
                recognizer.lang = control.language;
                recognizer.continuous = true;
                recognizer.interimResults = true;
                capture.text = '';
                capture.failed = false;
                recognizer.onresult = function(event) {
                    let text = '';
                    for (let i = 0; i < event.results.length; i++) {
                        text += event.results[i][0].transcript;
                    }
                    capture.text = text.trim();
                    post('speech_result', {text: capture.text, final: false});
                };
                recognizer.onerror = function(event) {
                    capture.failed = true;
                    post('speech_result', {error: event.error});
                };
                recognizer.onend = function() {
                    if (!capture.failed) {
                        post('speech_result', {text: capture.text, final: true});
                    }
                };
                recognizer.start();
                capture.recognizer = recognizer;
            }

            navigator.mediaDevices.getUserMedia({audio: true}).then(function(stream) {
                if (!capture.active) {
                    stream.getTracks().forEach(function(track) { track.stop(); });
                    return;
                }
                const context = new AudioContext({sampleRate: 16000});
                const source = context.createMediaStreamSource(stream);
                const processor = context.createScriptProcessor(4096, 1, 1);
                processor.onaudioprocess = function(event) {
                    const samples = event.inputBuffer.getChannelData(0);
                    const pcm = new Int16Array(samples.length);
                    for (let i = 0; i < samples.length; i++) {
                        const s = Math.max(-1, Math.min(1, samples[i]));
                        pcm[i] = s < 0 ? s * 0x8000 : s * 0x7fff;
                    }
                    const bytes = new Uint8Array(pcm.buffer);
                    let binary = '';
                    for (let i = 0; i < bytes.length; i++) {
                        binary += String.fromCharCode(bytes[i]);
                    }
                    post('audio_chunk', {pcm: btoa(binary)});
                };
                source.connect(processor);
                processor.connect(context.destination);
                capture.stream = stream;
                capture.context = context;
                capture.processor = processor;
            }).catch(function(err) {
                const code = err && err.name === 'NotAllowedError' ? 'not-allowed' : 'audio-capture';
                post('speech_result', {error: code});
            });
            return clientside.no_update;
        }
        """,
        Output("speech_result", "data", allow_duplicate=True),
        [Input("speech_control", "data")],
        prevent_initial_call=True,
    )
