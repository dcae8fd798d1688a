from pagestreamer.gui.widgets.page_streamer_widget import PageStreamerWidget
