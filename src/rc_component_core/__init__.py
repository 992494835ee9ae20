"""
rc-component-core - lifecycle framework for periodic control components.

Components get a uniform setup/start/stop/shutdown protocol, a per-tick state
machine and a fixed-rate control loop on their own thread. The bundled RC
controller maps remote-control channels to velocity commands over MQTT.
"""
